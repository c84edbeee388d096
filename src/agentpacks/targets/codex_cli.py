"""
Codex CLI backend.

Layout:
    .codex/memories/<slug>.md     every eligible rule
    .codex/prompts/<slug>.md      commands, as custom prompts
    .codex/skills/<name>/         SKILL.md plus assets
    .codex/config.toml            [mcp_servers.<name>] tables inside an
                                  agentpacks-delimited block
"""

import re

from agentpacks.schema import FeatureId, McpConfig, MergedFeatures, TargetId
from agentpacks.targets.base import BaseTarget
from agentpacks.targets.filesystem import GENERATED_MARKER, OutputWriter
from agentpacks.targets.render import markdown_document, toml_array, toml_string

_BARE_KEY = re.compile(r"^[A-Za-z0-9_-]+$")


def toml_key(name: str) -> str:
    return name if _BARE_KEY.match(name) else toml_string(name)


def mcp_tables(mcp: McpConfig) -> str:
    """Render MCP servers as Codex `[mcp_servers.<name>]` TOML tables."""
    blocks = [f"# {GENERATED_MARKER}: MCP servers"]
    for name, server in mcp.mcp_servers.items():
        table = f"mcp_servers.{toml_key(name)}"
        lines = [f"[{table}]"]
        if server.is_remote:
            lines.append(f"url = {toml_string(server.url)}")
        else:
            lines.append(f"command = {toml_string(server.command)}")
            if server.args:
                lines.append(f"args = {toml_array(server.args)}")
        if server.env:
            lines.append("")
            lines.append(f"[{table}.env]")
            lines.extend(f"{toml_key(k)} = {toml_string(v)}" for k, v in server.env.items())
        if server.headers:
            lines.append("")
            lines.append(f"[{table}.http_headers]")
            lines.extend(f"{toml_key(k)} = {toml_string(v)}" for k, v in server.headers.items())
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


class CodexCliTarget(BaseTarget):
    """Writes the .codex/ tree."""

    id = TargetId.CODEX_CLI
    name = "Codex CLI"
    supported_features = frozenset({FeatureId.RULES, FeatureId.COMMANDS, FeatureId.SKILLS, FeatureId.MCP})

    def render(self, features: MergedFeatures, enabled: frozenset[FeatureId], writer: OutputWriter) -> None:
        if FeatureId.RULES in enabled:
            writer.manage_dir(".codex/memories", ".md")
            for rule in self.eligible(features.rules):
                writer.write_text(
                    f".codex/memories/{rule.slug}.md",
                    markdown_document(rule.body, {"description": rule.description, **self.target_options(rule)}),
                )

        if FeatureId.COMMANDS in enabled:
            writer.manage_dir(".codex/prompts", ".md")
            for command in self.eligible(features.commands):
                writer.write_text(
                    f".codex/prompts/{command.slug}.md",
                    markdown_document(
                        command.body,
                        {"description": command.description, **self.target_options(command)},
                    ),
                )

        if FeatureId.SKILLS in enabled:
            writer.manage_skills(".codex/skills")
            for skill in self.eligible(features.skills):
                self.write_skill(
                    writer,
                    ".codex/skills",
                    skill,
                    {
                        "name": skill.name,
                        "description": skill.description or skill.name,
                        **self.target_options(skill),
                    },
                )

        if FeatureId.MCP in enabled:
            writer.manage_block(".codex/config.toml")
        if FeatureId.MCP in enabled and features.mcp.mcp_servers:
            writer.upsert_block(".codex/config.toml", mcp_tables(features.mcp))
