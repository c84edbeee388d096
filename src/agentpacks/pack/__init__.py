"""
Pack system for agentpacks.

This module reads pack directories (rules, commands, agents, skills, plugins,
hooks, MCP servers, models and ignore patterns) into typed, immutable Pack
records.

Key Components:
    - PackManifest: Pydantic model for pack.json
    - PackLoader: Load and validate one pack directory
    - load_all: Load an ordered list of pack sources
    - parse_frontmatter: Split a markdown file into frontmatter and body
"""

from agentpacks.pack.frontmatter import parse_frontmatter
from agentpacks.pack.loader import PackLoader, load_all, resolve_pack_source
from agentpacks.pack.manifest import (
    AgentFrontmatter,
    CommandFrontmatter,
    PackManifest,
    RuleFrontmatter,
    SkillFrontmatter,
)

__all__ = [
    "AgentFrontmatter",
    "CommandFrontmatter",
    "PackLoader",
    "PackManifest",
    "RuleFrontmatter",
    "SkillFrontmatter",
    "load_all",
    "parse_frontmatter",
    "resolve_pack_source",
]
