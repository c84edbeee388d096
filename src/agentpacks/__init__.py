"""
agentpacks - compile declarative agent packs into coding-assistant configuration.

A pack is a directory of rules, commands, sub-agents, skills, plugins, hooks,
MCP servers, ignore patterns and model settings. agentpacks merges an ordered list of packs and
writes the result in the layout each tool expects:
- OpenCode, Cursor, Claude Code, Codex CLI, Gemini CLI
- GitHub Copilot instructions and AGENTS.md

Example usage:
    $ agentpacks validate
    $ agentpacks generate --targets cursor,claudecode --delete
    $ agentpacks pack validate packs/base
"""

__version__ = "0.1.0"
__author__ = "agentpacks Contributors"

__all__ = [
    "__version__",
    "__author__",
]
