"""
Pack manifest and frontmatter schema definitions.

This module defines the Pydantic models for the declarative pack files:
- PackManifest: pack.json at the pack root
- RuleFrontmatter: rules/*.md
- CommandFrontmatter: commands/*.md
- AgentFrontmatter: agents/*.md
- SkillFrontmatter: skills/<name>/SKILL.md

Design Decisions:
    - PackManifest is strict (extra="forbid") and frozen
    - Frontmatter models ignore unknown keys; frontmatter is shared with other
      tools and commonly carries keys agentpacks has no use for
    - Keys named after a target id (e.g. `cursor:`) are per-target option
      blocks and are split off before validation
"""

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from agentpacks.schema import ENTRY_NAME_PATTERN, TARGET_IDS, TargetSelector


# =============================================================================
# Pack Manifest Model
# =============================================================================


class PackManifest(BaseModel):
    """
    Manifest for an agentpacks pack, loaded from pack.json.

    Attributes:
        name: Unique pack identifier (lowercase alphanumeric with hyphens/underscores)
        version: Semantic version string (e.g., "1.0.0")
        description: Human-readable description of what the pack configures
        author: Pack author name or organization
        tags: List of tags for categorization
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(
        ...,
        description="Unique pack identifier",
        min_length=1,
        max_length=64,
    )
    version: str = Field(
        ...,
        description="Semantic version string",
    )
    description: str = Field(
        default="",
        description="Human-readable description",
    )
    author: str = Field(
        default="",
        description="Pack author name or organization",
    )
    tags: list[str] = Field(
        default_factory=list,
        description="Tags for categorization",
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate pack name format (lowercase alphanumeric with hyphens/underscores)."""
        if not re.match(r"^[a-z][a-z0-9_-]*$", v):
            msg = (
                f"Invalid pack name: {v}. "
                "Must start with lowercase letter, contain only lowercase letters, "
                "numbers, hyphens, and underscores."
            )
            raise ValueError(msg)
        return v

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        """Validate semantic version format."""
        if not re.match(r"^\d+\.\d+\.\d+(-[a-zA-Z0-9.]+)?$", v):
            msg = f"Invalid version format: {v}. Expected semver (e.g., '1.0.0')"
            raise ValueError(msg)
        return v


# =============================================================================
# Frontmatter Models
# =============================================================================


class _Frontmatter(BaseModel):
    """Keys shared by every markdown feature file."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    targets: TargetSelector = Field(default_factory=TargetSelector)
    description: str | None = None

    @field_validator("targets", mode="before")
    @classmethod
    def parse_targets(cls, v: Any) -> TargetSelector:
        """Accept '*', a single target id or a list of target ids."""
        if isinstance(v, TargetSelector):
            return v
        return TargetSelector.parse(v)


class RuleFrontmatter(_Frontmatter):
    """Frontmatter of rules/*.md."""

    root: bool = False
    globs: tuple[str, ...] = ()

    @field_validator("globs", mode="before")
    @classmethod
    def parse_globs(cls, v: Any) -> Any:
        """Allow a single glob string or a comma-separated list."""
        if v is None:
            return ()
        if isinstance(v, str):
            return tuple(g.strip() for g in v.split(",") if g.strip())
        return v


class CommandFrontmatter(_Frontmatter):
    """Frontmatter of commands/*.md."""


def _check_entry_name(v: str) -> str:
    if not re.fullmatch(ENTRY_NAME_PATTERN, v):
        msg = (
            f"Invalid name: {v!r}. "
            "Must start with a letter or digit and contain only letters, digits, "
            "dots, hyphens and underscores."
        )
        raise ValueError(msg)
    return v


class AgentFrontmatter(_Frontmatter):
    """Frontmatter of agents/*.md; `name` is mandatory."""

    name: str = Field(..., min_length=1)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """The name becomes a file name in every backend; no path separators."""
        return _check_entry_name(v)


class SkillFrontmatter(_Frontmatter):
    """Frontmatter of skills/<dir>/SKILL.md; `name` defaults to the directory."""

    name: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        """The name becomes a directory name in every backend."""
        if v is None:
            return v
        return _check_entry_name(v)


def split_target_options(data: dict[str, Any]) -> tuple[dict[str, Any], dict[str, dict[str, Any]]]:
    """
    Separate per-target option blocks from the shared frontmatter keys.

    A top-level key equal to a target id whose value is a mapping (for
    example `claudecode: {model: opus}`) is a block of extra frontmatter for
    that target only.

    Returns:
        (shared keys, {target_id: options})
    """
    target_names = {t.value for t in TARGET_IDS}
    shared: dict[str, Any] = {}
    options: dict[str, dict[str, Any]] = {}
    for key, value in data.items():
        if key in target_names and isinstance(value, dict):
            options[key] = dict(value)
        else:
            shared[key] = value
    return shared, options
