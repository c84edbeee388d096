"""
Schema definitions for agentpacks.

This module defines the typed records shared by every stage of a compile:
- FeatureId/TargetId: The feature categories and the supported assistant tools
- TargetSelector: Which targets a feature entry applies to
- Rule/Command/Agent/Skill: Parsed markdown feature entries
- HooksConfig/McpConfig/ModelsConfig: Parsed JSON feature files
- Plugin: A raw OpenCode plugin module
- Pack: Everything one pack directory declares
- MergedFeatures: The order-resolved union of all packs

Design Decisions:
    - Frontmatter is parsed once by the loader; backends only see these records
    - All records are frozen (immutable after creation)
    - Records keep the name of the pack they came from for conflict reporting
"""

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


WILDCARD = "*"


# =============================================================================
# Enums
# =============================================================================


class FeatureId(str, Enum):
    """Aggregable feature categories a pack can declare."""

    RULES = "rules"
    COMMANDS = "commands"
    AGENTS = "agents"
    SKILLS = "skills"
    HOOKS = "hooks"
    MCP = "mcp"
    IGNORE = "ignore"
    PLUGINS = "plugins"
    MODELS = "models"


class TargetId(str, Enum):
    """Assistant tools agentpacks can compile for."""

    OPENCODE = "opencode"
    CURSOR = "cursor"
    CLAUDE_CODE = "claudecode"
    CODEX_CLI = "codexcli"
    GEMINI_CLI = "geminicli"
    COPILOT = "copilot"
    AGENTS_MD = "agentsmd"


FEATURE_IDS: tuple[FeatureId, ...] = tuple(FeatureId)
TARGET_IDS: tuple[TargetId, ...] = tuple(TargetId)

SUPPORTED_HOOKS_VERSIONS = frozenset({1})

ENTRY_NAME_PATTERN = r"[A-Za-z0-9][A-Za-z0-9._-]*"


# =============================================================================
# Selector
# =============================================================================


class TargetSelector(BaseModel):
    """
    The `targets` field of a feature entry.

    Either the wildcard (every backend) or an explicit list of target ids.
    Unknown ids are kept as-is so packs can name tools added later.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    targets: tuple[str, ...] = (WILDCARD,)

    @classmethod
    def parse(cls, value: Any) -> "TargetSelector":
        """Build a selector from a frontmatter value ("*", "cursor" or a list)."""
        if value is None:
            return cls()
        if isinstance(value, str):
            return cls(targets=(value,))
        if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
            if not value:
                msg = "targets must not be empty"
                raise ValueError(msg)
            return cls(targets=tuple(value))
        msg = f"targets must be '*' or a list of target ids, got {value!r}"
        raise ValueError(msg)

    @property
    def is_wildcard(self) -> bool:
        return WILDCARD in self.targets

    def matches(self, target_id: str) -> bool:
        """Whether an entry with this selector is eligible for target_id."""
        if isinstance(target_id, TargetId):
            target_id = target_id.value
        return self.is_wildcard or target_id in self.targets


# =============================================================================
# Markdown Feature Records
# =============================================================================


class Rule(BaseModel):
    """
    A rule file (rules/<slug>.md).

    Attributes:
        slug: File stem, the rule's identity key
        root: Whether this rule is part of the project's canonical preamble
        targets: Which backends render this rule
        description: Optional one-line summary, used for headings and MDC
        globs: File globs the rule is scoped to (empty = always applies)
        body: Markdown content after the frontmatter block
        source_pack: Name of the pack that declared the rule
        target_options: Per-target frontmatter blocks, keyed by target id
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    slug: str = Field(..., min_length=1)
    root: bool = False
    targets: TargetSelector = Field(default_factory=TargetSelector)
    description: str | None = None
    globs: tuple[str, ...] = ()
    body: str = ""
    source_pack: str = ""
    target_options: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @property
    def key(self) -> str:
        return self.slug


class Command(BaseModel):
    """A reusable command snippet (commands/<slug>.md)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    slug: str = Field(..., min_length=1)
    targets: TargetSelector = Field(default_factory=TargetSelector)
    description: str | None = None
    body: str = ""
    source_pack: str = ""
    target_options: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @property
    def key(self) -> str:
        return self.slug


class Agent(BaseModel):
    """A sub-agent persona (agents/*.md); identity is the frontmatter name."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    targets: TargetSelector = Field(default_factory=TargetSelector)
    description: str | None = None
    body: str = ""
    source_pack: str = ""
    target_options: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @property
    def key(self) -> str:
        return self.name


class SkillAsset(BaseModel):
    """An auxiliary file bundled next to a skill's SKILL.md."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = Field(..., description="POSIX path relative to the skill directory")
    data: bytes = b""


class Skill(BaseModel):
    """
    A skill bundle (skills/<name>/SKILL.md plus sibling assets).

    The identity is the directory name unless frontmatter sets `name`.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    targets: TargetSelector = Field(default_factory=TargetSelector)
    description: str | None = None
    body: str = ""
    assets: tuple[SkillAsset, ...] = ()
    source_pack: str = ""
    target_options: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @property
    def key(self) -> str:
        return self.name


class Plugin(BaseModel):
    """
    A raw OpenCode plugin module (plugins/<file>.ts|.js|.mjs).

    Copied verbatim apart from the generated-marker comment; the identity
    is the file name.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    content: str = ""
    targets: TargetSelector = Field(default_factory=TargetSelector)
    source_pack: str = ""

    @property
    def key(self) -> str:
        return self.name


# =============================================================================
# JSON Feature Records
# =============================================================================


class HookCommand(BaseModel):
    """One command bound to a lifecycle event."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    command: str = Field(..., min_length=1)
    matcher: str | None = None


class HooksConfig(BaseModel):
    """
    Lifecycle hook bindings (hooks/hooks.json).

    Attributes:
        version: Schema version, only 1 is understood
        hooks: Event name -> ordered commands
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    version: int = 1
    hooks: dict[str, tuple[HookCommand, ...]] = Field(default_factory=dict)

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: int) -> int:
        """Reject hook file versions this release cannot interpret."""
        if v not in SUPPORTED_HOOKS_VERSIONS:
            msg = f"Unsupported hooks version: {v}. Supported: {sorted(SUPPORTED_HOOKS_VERSIONS)}"
            raise ValueError(msg)
        return v

    @property
    def command_count(self) -> int:
        return sum(len(commands) for commands in self.hooks.values())

    def to_json_dict(self) -> dict[str, Any]:
        """Render as {version, hooks} with plain lists, keeping event order."""
        return {
            "version": self.version,
            "hooks": {
                event: [h.model_dump(exclude_none=True) for h in commands]
                for event, commands in self.hooks.items()
            },
        }


class McpServer(BaseModel):
    """
    An MCP server declaration.

    Local servers set `command` (and optionally `args`/`env`); remote servers
    set `url` (and optionally `headers`).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    command: str | None = None
    args: tuple[str, ...] = ()
    env: dict[str, str] = Field(default_factory=dict)
    url: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_transport(self) -> "McpServer":
        """A server needs exactly one of command or url."""
        if bool(self.command) == bool(self.url):
            msg = "server must define exactly one of 'command' or 'url'"
            raise ValueError(msg)
        return self

    @property
    def is_remote(self) -> bool:
        return self.url is not None

    def to_json_dict(self) -> dict[str, Any]:
        """Render in the common {command, args, env} / {url, headers} dialect."""
        if self.url is not None:
            data: dict[str, Any] = {"url": self.url}
            if self.headers:
                data["headers"] = dict(self.headers)
            return data
        data = {"command": self.command, "args": list(self.args)}
        if self.env:
            data["env"] = dict(self.env)
        return data


class McpConfig(BaseModel):
    """MCP server declarations (mcp.json)."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    mcp_servers: dict[str, McpServer] = Field(default_factory=dict, alias="mcpServers")

    def to_json_dict(self) -> dict[str, Any]:
        return {
            "mcpServers": {name: server.to_json_dict() for name, server in self.mcp_servers.items()},
        }


class AgentModel(BaseModel):
    """Model assignment for one agent."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    model: str = Field(..., min_length=1)
    temperature: float | None = Field(default=None, ge=0, le=2)
    top_p: float | None = Field(default=None, ge=0, le=1)


class ModelProfile(BaseModel):
    """A named preset for the default and small models (e.g. quality, budget)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    description: str | None = None
    default: str | None = None
    small: str | None = None
    agents: dict[str, AgentModel] = Field(default_factory=dict)


class RoutingRule(BaseModel):
    """
    Maps task context to a profile.

    `when` holds key=value conditions such as {"complexity": "high"} or
    {"task": "review"}; `use` names the profile to apply.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    when: dict[str, str]
    use: str = Field(..., min_length=1)
    description: str | None = None
    priority: int | None = None


class ProviderModel(BaseModel):
    """Per-model provider options and named variants."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    options: dict[str, Any] = Field(default_factory=dict)
    variants: dict[str, dict[str, Any]] = Field(default_factory=dict)


class ProviderConfig(BaseModel):
    """Provider-level options and per-model settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    options: dict[str, Any] = Field(default_factory=dict)
    models: dict[str, ProviderModel] = Field(default_factory=dict)


class ModelOverride(BaseModel):
    """Model choices that apply to one target only."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    default: str | None = None
    small: str | None = None
    agents: dict[str, AgentModel] = Field(default_factory=dict)


class ModelsConfig(BaseModel):
    """
    Model selection (models.json).

    Attributes:
        default: Main model, as "<provider>/<model>"
        small: Model for lightweight tasks
        agents: Agent name -> model assignment
        profiles: Named presets applied with --model-profile
        providers: Provider options, keyed by provider id
        routing: Ordered task-context -> profile rules
        overrides: Target id -> model choices for that target only
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    default: str | None = None
    small: str | None = None
    agents: dict[str, AgentModel] = Field(default_factory=dict)
    profiles: dict[str, ModelProfile] = Field(default_factory=dict)
    providers: dict[str, ProviderConfig] = Field(default_factory=dict)
    routing: tuple[RoutingRule, ...] = ()
    overrides: dict[str, ModelOverride] = Field(default_factory=dict)

    @property
    def entry_count(self) -> int:
        """Number of declared entries, used for skip reporting."""
        return (
            (self.default is not None)
            + (self.small is not None)
            + len(self.agents)
            + len(self.profiles)
            + len(self.providers)
            + len(self.routing)
            + len(self.overrides)
        )


# =============================================================================
# Pack & Merged Features
# =============================================================================


class Pack(BaseModel):
    """
    Everything one pack directory declares.

    Created by the loader for the duration of a compile; never persisted.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    version: str
    description: str = ""
    root_dir: Path
    rules: tuple[Rule, ...] = ()
    commands: tuple[Command, ...] = ()
    agents: tuple[Agent, ...] = ()
    skills: tuple[Skill, ...] = ()
    plugins: tuple[Plugin, ...] = ()
    hooks: HooksConfig | None = None
    mcp: McpConfig | None = None
    models: ModelsConfig | None = None
    ignore_patterns: tuple[str, ...] = ()


class MergedFeatures(BaseModel):
    """
    The order-resolved union of every loaded pack.

    The sole input to every backend. Entries are ordered by (pack order,
    declaration order within the pack); no target filtering is applied.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    rules: tuple[Rule, ...] = ()
    commands: tuple[Command, ...] = ()
    agents: tuple[Agent, ...] = ()
    skills: tuple[Skill, ...] = ()
    plugins: tuple[Plugin, ...] = ()
    hooks: HooksConfig = Field(default_factory=HooksConfig)
    mcp: McpConfig = Field(default_factory=McpConfig)
    models: ModelsConfig = Field(default_factory=ModelsConfig)
    ignore_patterns: tuple[str, ...] = ()
    pack_names: tuple[str, ...] = ()

    def root_rules(self) -> tuple[Rule, ...]:
        return tuple(r for r in self.rules if r.root)

    def detail_rules(self) -> tuple[Rule, ...]:
        return tuple(r for r in self.rules if not r.root)

    def count(self, feature: FeatureId) -> int:
        """Number of entries merged for a feature category."""
        if feature == FeatureId.RULES:
            return len(self.rules)
        if feature == FeatureId.COMMANDS:
            return len(self.commands)
        if feature == FeatureId.AGENTS:
            return len(self.agents)
        if feature == FeatureId.SKILLS:
            return len(self.skills)
        if feature == FeatureId.HOOKS:
            return self.hooks.command_count
        if feature == FeatureId.MCP:
            return len(self.mcp.mcp_servers)
        if feature == FeatureId.PLUGINS:
            return len(self.plugins)
        if feature == FeatureId.MODELS:
            return self.models.entry_count
        return len(self.ignore_patterns)
