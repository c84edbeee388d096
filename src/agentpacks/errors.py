"""
Exception hierarchy for agentpacks.

All agentpacks exceptions inherit from AgentpacksError, allowing callers to
catch every load-time failure with a single except clause.

Exception Categories:
    - PackNotFoundError: A configured pack directory does not exist
    - PackManifestError: pack.json is missing or invalid
    - FrontmatterParseError: A feature file has a malformed frontmatter block
    - HooksConfigError / McpConfigError: hooks/hooks.json or mcp.json is invalid
    - IgnoreFileError / PluginFileError: the ignore file or a plugin is unreadable
    - ModelsConfigError: models.json is invalid
    - WorkspaceConfigError: The workspace configuration file is invalid
    - TargetWriteError: A generated file could not be written (per file)

Load-time errors are fatal and abort the compile before anything is written.
TargetWriteError is collected per backend instead of being raised to the
caller; see agentpacks.targets.base.GenerateResult.

Non-fatal events (OverrideConflict, UnsupportedFeatureSkip) are plain records,
not exceptions; they live here so every reportable outcome has one home.
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Pack errors: 1xxx
ERROR_PACK_NOT_FOUND = 1001
ERROR_PACK_MANIFEST = 1002

# Feature file errors: 2xxx
ERROR_FRONTMATTER_PARSE = 2001
ERROR_HOOKS_CONFIG = 2002
ERROR_MCP_CONFIG = 2003
ERROR_IGNORE_FILE = 2004
ERROR_PLUGIN_FILE = 2005
ERROR_MODELS_CONFIG = 2006

# Workspace errors: 3xxx
ERROR_WORKSPACE_CONFIG = 3001
ERROR_UNKNOWN_TARGET = 3002
ERROR_UNKNOWN_FEATURE = 3003

# Generation errors: 4xxx
ERROR_TARGET_WRITE = 4001


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class AgentpacksError(Exception):
    """
    Base exception for all agentpacks errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Pack Errors
# =============================================================================


@dataclass
class PackError(AgentpacksError):
    """
    Base class for errors tied to one pack directory.

    Attributes:
        pack_name: Name of the pack (directory name if the manifest is unreadable)
        pack_path: Absolute path of the pack directory
    """

    pack_name: str = ""
    pack_path: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context.update({
            "pack_name": self.pack_name,
            "pack_path": self.pack_path,
        })


@dataclass
class PackNotFoundError(PackError):
    """Raised when a configured pack directory does not exist."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Pack not found: {self.pack_path or self.pack_name}"
        if self.code == 0:
            self.code = ERROR_PACK_NOT_FOUND
        if not self.suggestion:
            self.suggestion = "Check the 'packs' list in the workspace configuration"
        super().__post_init__()


@dataclass
class PackManifestError(PackError):
    """Raised when pack.json is missing, unreadable or fails validation."""

    manifest_path: str = ""
    validation_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid pack manifest {self.manifest_path}: {self.validation_error}"
        if self.code == 0:
            self.code = ERROR_PACK_MANIFEST
        if not self.suggestion:
            self.suggestion = 'pack.json must be a JSON object like {"name": "my-pack", "version": "1.0.0"}'
        super().__post_init__()
        self.context.update({
            "manifest_path": self.manifest_path,
            "validation_error": self.validation_error,
        })


# =============================================================================
# Feature File Errors
# =============================================================================


@dataclass
class FeatureFileError(PackError):
    """
    Base class for errors in a single feature file of a pack.

    Attributes:
        file_path: Path of the offending file
        detail: What is wrong with it
    """

    file_path: str = ""
    detail: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        super().__post_init__()
        self.context.update({
            "file_path": self.file_path,
            "detail": self.detail,
        })


@dataclass
class FrontmatterParseError(FeatureFileError):
    """Raised when a markdown feature file has malformed frontmatter."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Malformed frontmatter in {self.file_path}: {self.detail}"
        if self.code == 0:
            self.code = ERROR_FRONTMATTER_PARSE
        super().__post_init__()


@dataclass
class HooksConfigError(FeatureFileError):
    """Raised when hooks/hooks.json is invalid or declares an unknown version."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid hooks config {self.file_path}: {self.detail}"
        if self.code == 0:
            self.code = ERROR_HOOKS_CONFIG
        if not self.suggestion:
            self.suggestion = 'Expected {"version": 1, "hooks": {"<event>": [{"command": "..."}]}}'
        super().__post_init__()


@dataclass
class McpConfigError(FeatureFileError):
    """Raised when mcp.json is invalid."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid MCP config {self.file_path}: {self.detail}"
        if self.code == 0:
            self.code = ERROR_MCP_CONFIG
        if not self.suggestion:
            self.suggestion = 'Expected {"mcpServers": {"<name>": {"command": "...", "args": []}}}'
        super().__post_init__()


@dataclass
class IgnoreFileError(FeatureFileError):
    """Raised when the pack's ignore file cannot be read as UTF-8 text."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unreadable ignore file {self.file_path}: {self.detail}"
        if self.code == 0:
            self.code = ERROR_IGNORE_FILE
        if not self.suggestion:
            self.suggestion = "The ignore file must be UTF-8 text with one pattern per line"
        super().__post_init__()


@dataclass
class PluginFileError(FeatureFileError):
    """Raised when a file under plugins/ cannot be read as UTF-8 text."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unreadable plugin {self.file_path}: {self.detail}"
        if self.code == 0:
            self.code = ERROR_PLUGIN_FILE
        super().__post_init__()


@dataclass
class ModelsConfigError(FeatureFileError):
    """Raised when models.json is invalid."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid models config {self.file_path}: {self.detail}"
        if self.code == 0:
            self.code = ERROR_MODELS_CONFIG
        if not self.suggestion:
            self.suggestion = 'Expected {"default": "<provider>/<model>", "profiles": {...}}'
        super().__post_init__()


# =============================================================================
# Workspace Errors
# =============================================================================


@dataclass
class WorkspaceConfigError(AgentpacksError):
    """Raised when the workspace configuration file is missing or invalid."""

    config_path: str = ""
    validation_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid workspace config {self.config_path}: {self.validation_error}"
        if self.code == 0:
            self.code = ERROR_WORKSPACE_CONFIG
        self.context.update({
            "config_path": self.config_path,
            "validation_error": self.validation_error,
        })


@dataclass
class UnknownTargetError(AgentpacksError):
    """Raised when a caller asks for a target id no backend implements."""

    target_id: str = ""
    known: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unknown target: {self.target_id}"
        if self.code == 0:
            self.code = ERROR_UNKNOWN_TARGET
        if not self.suggestion and self.known:
            self.suggestion = f"Known targets: {', '.join(self.known)}"
        self.context["target_id"] = self.target_id


@dataclass
class UnknownFeatureError(AgentpacksError):
    """Raised when a caller asks for a feature id that does not exist."""

    feature_id: str = ""
    known: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unknown feature: {self.feature_id}"
        if self.code == 0:
            self.code = ERROR_UNKNOWN_FEATURE
        if not self.suggestion and self.known:
            self.suggestion = f"Known features: {', '.join(self.known)}"
        self.context["feature_id"] = self.feature_id


# =============================================================================
# Generation Errors
# =============================================================================


@dataclass
class TargetWriteError(AgentpacksError):
    """
    A single generated file could not be written or removed.

    Collected per backend in GenerateResult.errors; one failure never stops
    the remaining files or the remaining backends.

    Attributes:
        target_id: Backend that tried to write the file
        path: File path that failed
        underlying_error: The OS error text
    """

    target_id: str = ""
    path: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"[{self.target_id}] failed to write {self.path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_TARGET_WRITE
        self.context.update({
            "target_id": self.target_id,
            "path": self.path,
            "underlying_error": self.underlying_error,
        })


# =============================================================================
# Non-fatal Records
# =============================================================================


@dataclass(frozen=True)
class OverrideConflict:
    """
    A same-key collision the merger resolved in favour of a later pack.

    Attributes:
        feature: Feature category (rules, commands, agents, skills, plugins, mcp, models)
        key: Identity key that collided (slug, name or server name)
        previous_pack: Pack whose record was replaced
        winning_pack: Pack whose record is kept
    """

    feature: str
    key: str
    previous_pack: str
    winning_pack: str

    def describe(self) -> str:
        return (
            f"{self.feature} '{self.key}' from pack '{self.previous_pack}' "
            f"overridden by pack '{self.winning_pack}'"
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "feature": self.feature,
            "key": self.key,
            "previous_pack": self.previous_pack,
            "winning_pack": self.winning_pack,
        }


@dataclass(frozen=True)
class UnsupportedFeatureSkip:
    """A feature with merged content that a backend has no output for."""

    target_id: str
    feature: str
    item_count: int = 0

    def describe(self) -> str:
        return f"[{self.target_id}] skipped {self.feature} ({self.item_count} item(s)): not supported"

    def to_dict(self) -> dict[str, Any]:
        return {
            "target_id": self.target_id,
            "feature": self.feature,
            "item_count": self.item_count,
        }
