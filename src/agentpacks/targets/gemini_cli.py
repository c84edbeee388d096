"""
Gemini CLI backend.

Layout:
    GEMINI.md                       root rules, then an index of detail memories
    .gemini/memories/<slug>.md      detail rules
    .gemini/commands/<slug>.toml    `description` and `prompt`
    .gemini/skills/<name>/          SKILL.md plus assets
    .gemini/settings.json           `mcpServers` key
    .geminiignore
"""

from agentpacks.schema import Command, FeatureId, MergedFeatures, TargetId
from agentpacks.targets.base import BaseTarget
from agentpacks.targets.filesystem import HASH_MARKER, OutputWriter
from agentpacks.targets.render import (
    hash_comment_document,
    markdown_document,
    normalize_body,
    ordered_rules,
    render_sections,
    rule_heading,
    toml_string,
)

MEMORIES_DIR = ".gemini/memories"


def command_toml(command: Command) -> str:
    """A Gemini custom command file."""
    lines = [HASH_MARKER]
    if command.description:
        lines.append(f"description = {toml_string(command.description)}")
    lines.append(f"prompt = {toml_string(normalize_body(command.body))}")
    return "\n".join(lines) + "\n"


class GeminiCliTarget(BaseTarget):
    """Writes GEMINI.md, the .gemini/ tree and .geminiignore."""

    id = TargetId.GEMINI_CLI
    name = "Gemini CLI"
    supported_features = frozenset(
        {FeatureId.RULES, FeatureId.COMMANDS, FeatureId.SKILLS, FeatureId.MCP, FeatureId.IGNORE}
    )

    def render(self, features: MergedFeatures, enabled: frozenset[FeatureId], writer: OutputWriter) -> None:
        if FeatureId.RULES in enabled:
            self._render_rules(features, writer)

        if FeatureId.COMMANDS in enabled:
            writer.manage_dir(".gemini/commands", ".toml")
            for command in self.eligible(features.commands):
                writer.write_text(f".gemini/commands/{command.slug}.toml", command_toml(command))

        if FeatureId.SKILLS in enabled:
            writer.manage_skills(".gemini/skills")
            for skill in self.eligible(features.skills):
                self.write_skill(
                    writer,
                    ".gemini/skills",
                    skill,
                    {
                        "name": skill.name,
                        "description": skill.description or skill.name,
                        **self.target_options(skill),
                    },
                )

        if FeatureId.MCP in enabled:
            writer.manage_json_keys(".gemini/settings.json", {"mcpServers"})
        if FeatureId.MCP in enabled and features.mcp.mcp_servers:
            writer.update_json_keys(".gemini/settings.json", features.mcp.to_json_dict())

        if FeatureId.IGNORE in enabled:
            writer.manage_file(".geminiignore")
            if features.ignore_patterns:
                writer.write_text(".geminiignore", hash_comment_document(features.ignore_patterns))

    def _render_rules(self, features: MergedFeatures, writer: OutputWriter) -> None:
        rules = ordered_rules(self.eligible(features.rules))
        root_rules = [r for r in rules if r.root]
        detail_rules = [r for r in rules if not r.root]

        writer.manage_dir(MEMORIES_DIR, ".md")
        references = []
        for rule in detail_rules:
            rel_path = f"{MEMORIES_DIR}/{rule.slug}.md"
            writer.write_text(
                rel_path,
                markdown_document(rule.body, {"description": rule.description, **self.target_options(rule)}),
            )
            references.append((rule_heading(rule), rel_path))

        writer.manage_file("GEMINI.md")
        if root_rules or references:
            writer.write_text("GEMINI.md", render_sections(root_rules, references=references))
