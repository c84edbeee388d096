"""
Cursor backend.

Layout:
    .cursor/rules/<slug>.mdc      MDC frontmatter: description, globs, alwaysApply
    .cursor/rules/model-config.mdc
                                  model guidance, always applied
    .cursor/commands/<slug>.md
    .cursor/agents/<name>.md
    .cursor/hooks.json            {version: 1, hooks}
    .cursor/mcp.json              {mcpServers}
    .cursorignore

Root rules are not concatenated; they become `alwaysApply: true` rules.
"""

import json
from typing import Any

import yaml

from agentpacks.schema import FeatureId, HooksConfig, MergedFeatures, Rule, TargetId
from agentpacks.targets.base import BaseTarget
from agentpacks.targets.filesystem import OutputWriter
from agentpacks.targets.render import hash_comment_document, markdown_document, model_guidance

MODEL_RULE = "model-config.mdc"


def mdc_frontmatter(rule: Rule, options: dict[str, Any]) -> dict[str, Any]:
    """Cursor's MDC keys; empty strings are kept since Cursor expects all three."""
    return {
        "description": rule.description or "",
        "globs": ",".join(rule.globs),
        "alwaysApply": rule.root,
        **options,
    }


def hooks_document(hooks: HooksConfig) -> dict[str, Any]:
    """hooks.json in Cursor's schema; Cursor has no matcher field."""
    return {
        "version": hooks.version,
        "hooks": {
            event: [{"command": h.command} for h in commands] for event, commands in hooks.hooks.items() if commands
        },
    }


class CursorTarget(BaseTarget):
    """Writes the .cursor/ tree and .cursorignore."""

    id = TargetId.CURSOR
    name = "Cursor"
    supported_features = frozenset(
        {
            FeatureId.RULES,
            FeatureId.COMMANDS,
            FeatureId.AGENTS,
            FeatureId.HOOKS,
            FeatureId.MCP,
            FeatureId.IGNORE,
            FeatureId.MODELS,
        }
    )

    def render(self, features: MergedFeatures, enabled: frozenset[FeatureId], writer: OutputWriter) -> None:
        if FeatureId.RULES in enabled:
            writer.manage_dir(".cursor/rules", ".mdc", skip={MODEL_RULE})
            for rule in self.eligible(features.rules):
                writer.write_text(
                    f".cursor/rules/{rule.slug}.mdc",
                    self._mdc_document(rule),
                )

        if FeatureId.COMMANDS in enabled:
            writer.manage_dir(".cursor/commands", ".md")
            for command in self.eligible(features.commands):
                writer.write_text(
                    f".cursor/commands/{command.slug}.md",
                    markdown_document(command.body, self.target_options(command)),
                )

        if FeatureId.AGENTS in enabled:
            writer.manage_dir(".cursor/agents", ".md")
            for agent in self.eligible(features.agents):
                frontmatter = {
                    "name": agent.name,
                    "description": agent.description,
                    **self.target_options(agent),
                    **self.agent_model_options(features, enabled, agent),
                }
                writer.write_text(f".cursor/agents/{agent.name}.md", markdown_document(agent.body, frontmatter))

        if FeatureId.HOOKS in enabled:
            writer.manage_json_file(".cursor/hooks.json", {"version", "hooks"})
        if FeatureId.HOOKS in enabled and features.hooks.command_count:
            writer.write_json(".cursor/hooks.json", hooks_document(features.hooks))

        if FeatureId.MCP in enabled:
            writer.manage_json_file(".cursor/mcp.json", {"mcpServers"})
        if FeatureId.MCP in enabled and features.mcp.mcp_servers:
            writer.write_json(".cursor/mcp.json", features.mcp.to_json_dict())

        if FeatureId.IGNORE in enabled:
            writer.manage_file(".cursorignore")
            if features.ignore_patterns:
                writer.write_text(".cursorignore", hash_comment_document(features.ignore_patterns))

        if FeatureId.MODELS in enabled:
            writer.manage_file(f".cursor/rules/{MODEL_RULE}")
            resolved = self.resolved_models(features)
            if not resolved.is_empty:
                writer.write_text(
                    f".cursor/rules/{MODEL_RULE}",
                    self._mdc_lines({"description": "Model configuration", "globs": "", "alwaysApply": True})
                    + markdown_document(model_guidance(resolved)),
                )

    def _mdc_document(self, rule: Rule) -> str:
        return self._mdc_lines(mdc_frontmatter(rule, self.target_options(rule))) + markdown_document(rule.body)

    @staticmethod
    def _mdc_lines(frontmatter: dict[str, Any]) -> str:
        # MDC frontmatter must stay even when empty, so it is built here
        # rather than through render_frontmatter (which drops empty values).
        lines = ["---"]
        for key, value in frontmatter.items():
            lines.append(f"{key}: {mdc_scalar(key, value)}".rstrip())
        lines.append("---")
        return "\n".join(lines) + "\n"


def mdc_scalar(key: str, value: Any) -> str:
    """
    One MDC frontmatter value, on a single line.

    `globs` stays a bare comma-separated list, the form Cursor reads. Other
    strings are collapsed to one line and YAML-quoted when needed; mappings
    and lists are written as JSON flow values.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if key == "globs":
        if isinstance(value, (list, tuple)):
            return ",".join(str(v) for v in value)
        return " ".join(str(value).split())
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, str):
        text = " ".join(line.strip() for line in value.splitlines() if line.strip())
        if not text:
            return ""
        return yaml.safe_dump(text, allow_unicode=True, width=float("inf")).removesuffix("...\n").strip()
    return str(value)
