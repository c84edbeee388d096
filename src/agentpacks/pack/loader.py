"""
Pack loader for reading pack directories into typed Pack records.

This module provides the PackLoader class for:
- Loading and validating pack.json
- Scanning rules/, commands/, agents/ and skills/ and parsing frontmatter
- Loading hooks/hooks.json, mcp.json, models.json, plugins/ and the ignore file
- Loading an ordered list of pack sources (load_all)

Design Decisions:
    - Frontmatter is parsed here, once; backends never re-parse markdown
    - Files are scanned in sorted order so a pack's declaration order is stable
    - Validation is strict and fails fast; a broken pack aborts the compile
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from agentpacks.errors import (
    FeatureFileError,
    FrontmatterParseError,
    HooksConfigError,
    IgnoreFileError,
    McpConfigError,
    ModelsConfigError,
    PackManifestError,
    PackNotFoundError,
    PluginFileError,
)
from agentpacks.models import scan_models_for_secrets
from agentpacks.pack.frontmatter import parse_frontmatter
from agentpacks.pack.manifest import (
    AgentFrontmatter,
    CommandFrontmatter,
    PackManifest,
    RuleFrontmatter,
    SkillFrontmatter,
    split_target_options,
)
from agentpacks.schema import (
    Agent,
    Command,
    HooksConfig,
    McpConfig,
    ModelsConfig,
    Pack,
    Plugin,
    Rule,
    Skill,
    SkillAsset,
)

logger = logging.getLogger(__name__)

MANIFEST_FILE = "pack.json"
HOOKS_FILE = "hooks/hooks.json"
MCP_FILE = "mcp.json"
IGNORE_FILE = "ignore"
MODELS_FILE = "models.json"
PLUGINS_DIR = "plugins"
PLUGIN_SUFFIXES = (".ts", ".js", ".mjs")
SKILL_FILE = "SKILL.md"


def _validation_detail(error: ValidationError) -> str:
    """Flatten a pydantic error into one line: 'field: message; ...'."""
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "<root>"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


class PackLoader:
    """
    Loads and validates one pack directory.

    PackLoader provides methods to:
    - Load and validate pack.json
    - Load every feature file into typed records
    - Validate pack structure without raising

    Attributes:
        pack_path: Absolute path to the pack directory
        manifest: Loaded PackManifest (loaded on first access)

    Example:
        >>> loader = PackLoader("packs/base")
        >>> pack = loader.load()
        >>> [rule.slug for rule in pack.rules]
        ['overview', 'security']
    """

    def __init__(self, pack_path: Path | str) -> None:
        """
        Initialize with path to pack directory.

        Args:
            pack_path: Path to the pack directory (must exist)

        Raises:
            PackNotFoundError: If the pack directory doesn't exist
        """
        self.pack_path = Path(pack_path).resolve()
        self._manifest: PackManifest | None = None

        if not self.pack_path.exists():
            raise PackNotFoundError(
                pack_name=self.pack_path.name,
                pack_path=str(self.pack_path),
            )

        if not self.pack_path.is_dir():
            raise PackNotFoundError(
                pack_name=self.pack_path.name,
                pack_path=str(self.pack_path),
                message=f"Pack path is not a directory: {self.pack_path}",
            )

    @property
    def manifest(self) -> PackManifest:
        """
        Get the loaded manifest.

        Loads the manifest if not already loaded.

        Raises:
            PackManifestError: If manifest is missing or invalid
        """
        if self._manifest is None:
            self._manifest = self.load_manifest()
        return self._manifest

    @property
    def _pack_name(self) -> str:
        """Manifest name when available, directory name otherwise."""
        if self._manifest is not None:
            return self._manifest.name
        return self.pack_path.name

    # =========================================================================
    # Manifest
    # =========================================================================

    def load_manifest(self) -> PackManifest:
        """
        Load and validate pack.json.

        Raises:
            PackManifestError: If pack.json is missing, not JSON, or invalid
        """
        manifest_path = self.pack_path / MANIFEST_FILE

        if not manifest_path.is_file():
            raise PackManifestError(
                pack_name=self.pack_path.name,
                pack_path=str(self.pack_path),
                manifest_path=str(manifest_path),
                validation_error="file not found",
            )

        try:
            data = json.loads(manifest_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PackManifestError(
                pack_name=self.pack_path.name,
                pack_path=str(self.pack_path),
                manifest_path=str(manifest_path),
                validation_error=f"Invalid JSON: {e}",
            ) from e

        if not isinstance(data, dict):
            raise PackManifestError(
                pack_name=self.pack_path.name,
                pack_path=str(self.pack_path),
                manifest_path=str(manifest_path),
                validation_error="expected a JSON object",
            )

        try:
            return PackManifest.model_validate(data)
        except ValidationError as e:
            raise PackManifestError(
                pack_name=self.pack_path.name,
                pack_path=str(self.pack_path),
                manifest_path=str(manifest_path),
                validation_error=_validation_detail(e),
            ) from e

    # =========================================================================
    # Full Load
    # =========================================================================

    def load(self) -> Pack:
        """
        Load every feature the pack declares.

        Returns:
            Immutable Pack record

        Raises:
            PackManifestError, or a FeatureFileError subclass: On the first
            invalid file
        """
        manifest = self.manifest
        pack = Pack(
            name=manifest.name,
            version=manifest.version,
            description=manifest.description,
            root_dir=self.pack_path,
            rules=tuple(self.load_rules()),
            commands=tuple(self.load_commands()),
            agents=tuple(self.load_agents()),
            skills=tuple(self.load_skills()),
            plugins=tuple(self.load_plugins()),
            hooks=self.load_hooks(),
            mcp=self.load_mcp(),
            models=self.load_models(),
            ignore_patterns=tuple(self.load_ignore()),
        )
        logger.debug(
            "Loaded pack %s@%s from %s: %d rules, %d commands, %d agents, %d skills",
            pack.name,
            pack.version,
            self.pack_path,
            len(pack.rules),
            len(pack.commands),
            len(pack.agents),
            len(pack.skills),
        )
        return pack

    # =========================================================================
    # Markdown Features
    # =========================================================================

    def _markdown_files(self, subdir: str) -> list[Path]:
        directory = self.pack_path / subdir
        if not directory.is_dir():
            return []
        return sorted(p for p in directory.glob("*.md") if p.is_file())

    def _read_markdown(self, path: Path) -> tuple[dict[str, Any], dict[str, dict[str, Any]], str]:
        """Read a markdown file; returns (shared keys, per-target options, body)."""
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise FrontmatterParseError(
                pack_name=self._pack_name,
                pack_path=str(self.pack_path),
                file_path=str(path),
                detail=f"cannot read file: {e}",
            ) from e
        data, body = parse_frontmatter(text, path, pack_name=self._pack_name)
        shared, options = split_target_options(data)
        return shared, options, body

    def _validate_frontmatter(self, model: type[Any], data: dict[str, Any], path: Path) -> Any:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise FrontmatterParseError(
                pack_name=self._pack_name,
                pack_path=str(self.pack_path),
                file_path=str(path),
                detail=_validation_detail(e),
            ) from e

    def load_rules(self) -> list[Rule]:
        """Load rules/*.md in filename order."""
        rules = []
        for path in self._markdown_files("rules"):
            data, options, body = self._read_markdown(path)
            fm: RuleFrontmatter = self._validate_frontmatter(RuleFrontmatter, data, path)
            rules.append(
                Rule(
                    slug=path.stem,
                    root=fm.root,
                    targets=fm.targets,
                    description=fm.description,
                    globs=fm.globs,
                    body=body,
                    source_pack=self._pack_name,
                    target_options=options,
                )
            )
        return rules

    def load_commands(self) -> list[Command]:
        """Load commands/*.md in filename order."""
        commands = []
        for path in self._markdown_files("commands"):
            data, options, body = self._read_markdown(path)
            fm: CommandFrontmatter = self._validate_frontmatter(CommandFrontmatter, data, path)
            commands.append(
                Command(
                    slug=path.stem,
                    targets=fm.targets,
                    description=fm.description,
                    body=body,
                    source_pack=self._pack_name,
                    target_options=options,
                )
            )
        return commands

    def load_agents(self) -> list[Agent]:
        """Load agents/*.md in filename order; each file must declare `name`."""
        agents = []
        for path in self._markdown_files("agents"):
            data, options, body = self._read_markdown(path)
            if not data.get("name"):
                raise FrontmatterParseError(
                    pack_name=self._pack_name,
                    pack_path=str(self.pack_path),
                    file_path=str(path),
                    detail="agent frontmatter requires a 'name' field",
                )
            fm: AgentFrontmatter = self._validate_frontmatter(AgentFrontmatter, data, path)
            agents.append(
                Agent(
                    name=fm.name,
                    targets=fm.targets,
                    description=fm.description,
                    body=body,
                    source_pack=self._pack_name,
                    target_options=options,
                )
            )
        return agents

    def load_skills(self) -> list[Skill]:
        """Load skills/<dir>/SKILL.md bundles with their asset files."""
        skills_dir = self.pack_path / "skills"
        if not skills_dir.is_dir():
            return []

        skills = []
        for skill_dir in sorted(p for p in skills_dir.iterdir() if p.is_dir()):
            skill_file = skill_dir / SKILL_FILE
            if not skill_file.is_file():
                logger.debug("Skipping %s: no %s", skill_dir, SKILL_FILE)
                continue
            data, options, body = self._read_markdown(skill_file)
            fm: SkillFrontmatter = self._validate_frontmatter(SkillFrontmatter, data, skill_file)
            skills.append(
                Skill(
                    name=fm.name or skill_dir.name,
                    targets=fm.targets,
                    description=fm.description,
                    body=body,
                    assets=tuple(self._load_skill_assets(skill_dir)),
                    source_pack=self._pack_name,
                    target_options=options,
                )
            )
        return skills

    def _load_skill_assets(self, skill_dir: Path) -> list[SkillAsset]:
        assets = []
        for path in sorted(p for p in skill_dir.rglob("*") if p.is_file()):
            rel = path.relative_to(skill_dir).as_posix()
            if rel == SKILL_FILE:
                continue
            try:
                data = path.read_bytes()
            except OSError as e:
                raise FrontmatterParseError(
                    pack_name=self._pack_name,
                    pack_path=str(self.pack_path),
                    file_path=str(path),
                    detail=f"cannot read skill asset: {e}",
                ) from e
            assets.append(SkillAsset(path=rel, data=data))
        return assets

    # =========================================================================
    # JSON Features
    # =========================================================================

    def _read_json(self, path: Path, error_cls: type[FeatureFileError]) -> Any:
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise error_cls(
                pack_name=self._pack_name,
                pack_path=str(self.pack_path),
                file_path=str(path),
                detail=f"Invalid JSON: {e}",
            ) from e

    def load_hooks(self) -> HooksConfig | None:
        """
        Load hooks/hooks.json if present.

        Raises:
            HooksConfigError: Invalid JSON, wrong shape, or unknown version
        """
        path = self.pack_path / HOOKS_FILE
        if not path.is_file():
            return None

        data = self._read_json(path, HooksConfigError)
        if not isinstance(data, dict) or "version" not in data or "hooks" not in data:
            raise HooksConfigError(
                pack_name=self._pack_name,
                pack_path=str(self.pack_path),
                file_path=str(path),
                detail="expected an object with 'version' and 'hooks'",
            )

        try:
            return HooksConfig.model_validate(data)
        except ValidationError as e:
            raise HooksConfigError(
                pack_name=self._pack_name,
                pack_path=str(self.pack_path),
                file_path=str(path),
                detail=_validation_detail(e),
            ) from e

    def load_mcp(self) -> McpConfig | None:
        """
        Load mcp.json if present.

        Raises:
            McpConfigError: Invalid JSON or wrong shape
        """
        path = self.pack_path / MCP_FILE
        if not path.is_file():
            return None

        data = self._read_json(path, McpConfigError)
        if not isinstance(data, dict) or "mcpServers" not in data:
            raise McpConfigError(
                pack_name=self._pack_name,
                pack_path=str(self.pack_path),
                file_path=str(path),
                detail="expected an object with 'mcpServers'",
            )

        try:
            return McpConfig.model_validate(data)
        except ValidationError as e:
            raise McpConfigError(
                pack_name=self._pack_name,
                pack_path=str(self.pack_path),
                file_path=str(path),
                detail=_validation_detail(e),
            ) from e

    # =========================================================================
    # Ignore Patterns
    # =========================================================================

    def load_ignore(self) -> list[str]:
        """
        Load the ignore file; blank lines and # comments are skipped.

        Raises:
            IgnoreFileError: The file is unreadable or not UTF-8
        """
        path = self.pack_path / IGNORE_FILE
        if not path.is_file():
            return []

        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise IgnoreFileError(
                pack_name=self._pack_name,
                pack_path=str(self.pack_path),
                file_path=str(path),
                detail=str(e),
            ) from e

        patterns = []
        for line in text.splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            patterns.append(stripped)
        return patterns

    # =========================================================================
    # Plugins
    # =========================================================================

    def load_plugins(self) -> list[Plugin]:
        """
        Load plugins/*.ts, *.js and *.mjs in filename order.

        Other files in plugins/ are skipped.

        Raises:
            PluginFileError: A plugin is unreadable or not UTF-8
        """
        plugins_dir = self.pack_path / PLUGINS_DIR
        if not plugins_dir.is_dir():
            return []

        plugins = []
        for path in sorted(p for p in plugins_dir.iterdir() if p.is_file()):
            if path.suffix not in PLUGIN_SUFFIXES:
                logger.debug("Skipping %s: not a plugin module", path)
                continue
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                raise PluginFileError(
                    pack_name=self._pack_name,
                    pack_path=str(self.pack_path),
                    file_path=str(path),
                    detail=str(e),
                ) from e
            plugins.append(Plugin(name=path.name, content=content, source_pack=self._pack_name))
        return plugins

    # =========================================================================
    # Models
    # =========================================================================

    def load_models(self) -> ModelsConfig | None:
        """
        Load models.json if present.

        Values that look like credentials are logged as warnings; use
        scan_secrets() to treat them as errors.

        Raises:
            ModelsConfigError: Invalid JSON or wrong shape
        """
        path = self.pack_path / MODELS_FILE
        if not path.is_file():
            return None

        data = self._read_json(path, ModelsConfigError)
        if not isinstance(data, dict):
            raise ModelsConfigError(
                pack_name=self._pack_name,
                pack_path=str(self.pack_path),
                file_path=str(path),
                detail="expected a JSON object",
            )

        try:
            models = ModelsConfig.model_validate(data)
        except ValidationError as e:
            raise ModelsConfigError(
                pack_name=self._pack_name,
                pack_path=str(self.pack_path),
                file_path=str(path),
                detail=_validation_detail(e),
            ) from e

        for warning in scan_models_for_secrets(models):
            logger.warning("%s: %s", path, warning)
        return models

    def scan_secrets(self) -> list[str]:
        """Secret findings in models.json, as messages naming the file."""
        path = self.pack_path / MODELS_FILE
        models = self.load_models()
        if models is None:
            return []
        return [f"{path}: {warning}" for warning in scan_models_for_secrets(models)]

    # =========================================================================
    # Validation
    # =========================================================================

    def validate_structure(self) -> list[str]:
        """
        Validate pack structure, return list of errors.

        Checks:
        - pack.json exists and is valid
        - every feature file loads
        - models.json holds no credentials

        Returns:
            List of error messages (empty if valid)
        """
        errors: list[str] = []

        try:
            self.load_manifest()
        except PackManifestError as e:
            errors.append(e.message)
            return errors  # Can't continue without manifest

        checks = (
            self.load_rules,
            self.load_commands,
            self.load_agents,
            self.load_skills,
            self.load_plugins,
            self.load_hooks,
            self.load_mcp,
            self.load_ignore,
        )
        for check in checks:
            try:
                check()
            except FeatureFileError as e:
                errors.append(e.message)

        try:
            errors.extend(self.scan_secrets())
        except ModelsConfigError as e:
            errors.append(e.message)

        return errors


def resolve_pack_source(source: str, project_root: Path) -> Path:
    """Resolve a configured pack source relative to the project root."""
    path = Path(source).expanduser()
    if not path.is_absolute():
        path = project_root / path
    return path.resolve()


def load_all(sources: Iterable[str], project_root: Path | str) -> list[Pack]:
    """
    Load every configured pack, preserving declaration order.

    Args:
        sources: Pack source paths in precedence order
        project_root: Base for relative sources

    Returns:
        Loaded packs in the same order as sources

    Raises:
        PackNotFoundError: The first source that is not a directory; there is
            no silent skip
    """
    root = Path(project_root).resolve()
    packs = []
    for source in sources:
        loader = PackLoader(resolve_pack_source(source, root))
        packs.append(loader.load())
    return packs
