"""
Workspace configuration for agentpacks.

The workspace file lives at the project root and lists the packs to compile
in precedence order, plus default generation settings:

    packs:
      - ./packs/base
      - ./packs/team
    targets: ["*"]
    features: ["*"]
    base_dir: "."
    delete: false
    global: false
    model_profile: quality

`agentpacks.yaml`, `agentpacks.yml` and `agentpacks.json` are recognised, in
that order. JSON is read with the YAML loader.
"""

import os
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from agentpacks.errors import UnknownFeatureError, UnknownTargetError, WorkspaceConfigError
from agentpacks.schema import FEATURE_IDS, TARGET_IDS, WILDCARD, FeatureId, TargetId

CONFIG_FILENAMES = ("agentpacks.yaml", "agentpacks.yml", "agentpacks.json")
HOME_ENV_VAR = "AGENTPACKS_HOME"


class WorkspaceConfig(BaseModel):
    """
    Workspace configuration.

    Attributes:
        packs: Pack source paths, in precedence order (later wins)
        targets: Target ids to generate, or ["*"] for all
        features: Feature ids to generate, or ["*"] for all
        base_dir: Output directory relative to the project root
        delete: Remove stale generated files
        global_: Write to the user-level root instead of the project
        model_profile: models.json profile applied by default
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    packs: list[str] = Field(..., min_length=1)
    targets: list[str] = Field(default_factory=lambda: [WILDCARD])
    features: list[str] = Field(default_factory=lambda: [WILDCARD])
    base_dir: str = "."
    delete: bool = False
    global_: bool = Field(default=False, alias="global")
    model_profile: str | None = None

    @field_validator("targets")
    @classmethod
    def validate_targets(cls, v: list[str]) -> list[str]:
        """Reject target ids no backend implements."""
        try:
            parse_target_ids(v)
        except UnknownTargetError as e:
            raise ValueError(e.message) from e
        return v

    @field_validator("features")
    @classmethod
    def validate_features(cls, v: list[str]) -> list[str]:
        """Reject unknown feature ids."""
        try:
            parse_feature_ids(v)
        except UnknownFeatureError as e:
            raise ValueError(e.message) from e
        return v

    def target_ids(self) -> list[TargetId]:
        return parse_target_ids(self.targets)

    def feature_ids(self) -> list[FeatureId]:
        return parse_feature_ids(self.features)


def _split_ids(values: Iterable[str]) -> list[str]:
    """Flatten comma-separated CLI values into a list of ids."""
    ids: list[str] = []
    for value in values:
        ids.extend(part.strip() for part in value.split(",") if part.strip())
    return ids


def parse_target_ids(values: Iterable[str]) -> list[TargetId]:
    """
    Resolve target ids; "*" expands to every target in registry order.

    Raises:
        UnknownTargetError: For an id no backend implements
    """
    ids = _split_ids(values)
    if not ids or WILDCARD in ids:
        return list(TARGET_IDS)
    known = [t.value for t in TARGET_IDS]
    result: list[TargetId] = []
    for raw in ids:
        if raw not in known:
            raise UnknownTargetError(target_id=raw, known=known)
        target = TargetId(raw)
        if target not in result:
            result.append(target)
    return result


def parse_feature_ids(values: Iterable[str]) -> list[FeatureId]:
    """
    Resolve feature ids; "*" expands to every feature.

    Raises:
        UnknownFeatureError: For an unknown feature id
    """
    ids = _split_ids(values)
    if not ids or WILDCARD in ids:
        return list(FEATURE_IDS)
    known = [f.value for f in FEATURE_IDS]
    result: list[FeatureId] = []
    for raw in ids:
        if raw not in known:
            raise UnknownFeatureError(feature_id=raw, known=known)
        feature = FeatureId(raw)
        if feature not in result:
            result.append(feature)
    return result


def find_config_file(project_root: Path) -> Path | None:
    """Return the first workspace config file present at the project root."""
    for name in CONFIG_FILENAMES:
        candidate = project_root / name
        if candidate.is_file():
            return candidate
    return None


def load_workspace_config(path: Path | str) -> WorkspaceConfig:
    """
    Load a workspace configuration file.

    Raises:
        WorkspaceConfigError: Missing or unreadable file, invalid YAML/JSON
            or schema errors
    """
    config_path = Path(path)
    if not config_path.is_file():
        raise WorkspaceConfigError(
            config_path=str(config_path),
            validation_error="file not found",
            suggestion=f"Create one of: {', '.join(CONFIG_FILENAMES)}",
        )

    try:
        with config_path.open(encoding="utf-8") as f:
            data: Any = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise WorkspaceConfigError(
            config_path=str(config_path),
            validation_error=f"Invalid YAML: {e}",
        ) from e
    except (OSError, UnicodeDecodeError) as e:
        raise WorkspaceConfigError(
            config_path=str(config_path),
            validation_error=f"Unreadable file: {e}",
            suggestion="The workspace config must be UTF-8 text",
        ) from e

    if not isinstance(data, dict):
        raise WorkspaceConfigError(
            config_path=str(config_path),
            validation_error="expected a mapping with a 'packs' list",
        )

    try:
        return WorkspaceConfig.model_validate(data)
    except ValidationError as e:
        raise WorkspaceConfigError(
            config_path=str(config_path),
            validation_error=str(e),
        ) from e


def user_root() -> Path:
    """User-level output root for global generation."""
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser().resolve()
    return Path.home()
