"""
Claude Code backend.

Layout:
    CLAUDE.md                     root rules only, as delimited sections
    .claude/rules/<slug>.md       detail rules (`paths` from globs)
    .claude/commands/<slug>.md
    .claude/agents/<name>.md
    .claude/skills/<name>/        SKILL.md plus assets
    .claude/settings.json         `hooks` key, Claude event names
    .mcp.json                     `mcpServers` key
    .claude/rules/model-config.md model guidance (agents get a `model` key)

A detail rule never appears in CLAUDE.md, and a root rule never gets its own
file under .claude/rules/.
"""

from typing import Any

from agentpacks.schema import FeatureId, HooksConfig, MergedFeatures, TargetId
from agentpacks.targets.base import BaseTarget
from agentpacks.targets.filesystem import OutputWriter
from agentpacks.targets.render import markdown_document, model_guidance, ordered_rules, render_sections

MODEL_RULE = "model-config.md"

# Pack hook events -> (Claude event, implied matcher)
HOOK_EVENTS: dict[str, tuple[str, str | None]] = {
    "sessionStart": ("SessionStart", None),
    "preToolUse": ("PreToolUse", None),
    "postToolUse": ("PostToolUse", None),
    "stop": ("Stop", None),
    "afterFileEdit": ("PostToolUse", "Write|Edit|MultiEdit"),
    "afterShellExecution": ("PostToolUse", "Bash"),
}


def claude_event(event: str) -> tuple[str, str | None]:
    """Map a pack event name; unknown names are passed through capitalized."""
    if event in HOOK_EVENTS:
        return HOOK_EVENTS[event]
    return event[:1].upper() + event[1:], None


def settings_hooks(hooks: HooksConfig) -> dict[str, list[dict[str, Any]]]:
    """
    Convert hooks to Claude's settings.json shape.

    {Event: [{matcher?, hooks: [{type: "command", command}]}]}. Commands that
    share an event and matcher are grouped in one entry, in merged order.
    """
    grouped: dict[str, dict[str | None, list[dict[str, str]]]] = {}
    for event, commands in hooks.hooks.items():
        claude_name, implied_matcher = claude_event(event)
        for hook in commands:
            matcher = hook.matcher if hook.matcher is not None else implied_matcher
            grouped.setdefault(claude_name, {}).setdefault(matcher, []).append(
                {"type": "command", "command": hook.command}
            )

    result: dict[str, list[dict[str, Any]]] = {}
    for claude_name, by_matcher in grouped.items():
        entries = []
        for matcher, entry_hooks in by_matcher.items():
            entry: dict[str, Any] = {}
            if matcher:
                entry["matcher"] = matcher
            entry["hooks"] = entry_hooks
            entries.append(entry)
        result[claude_name] = entries
    return result


class ClaudeCodeTarget(BaseTarget):
    """Writes CLAUDE.md, the .claude/ tree and .mcp.json."""

    id = TargetId.CLAUDE_CODE
    name = "Claude Code"
    supported_features = frozenset(
        {
            FeatureId.RULES,
            FeatureId.COMMANDS,
            FeatureId.AGENTS,
            FeatureId.SKILLS,
            FeatureId.HOOKS,
            FeatureId.MCP,
            FeatureId.MODELS,
        }
    )

    def render(self, features: MergedFeatures, enabled: frozenset[FeatureId], writer: OutputWriter) -> None:
        if FeatureId.RULES in enabled:
            self._render_rules(features, writer)

        if FeatureId.COMMANDS in enabled:
            writer.manage_dir(".claude/commands", ".md")
            for command in self.eligible(features.commands):
                writer.write_text(
                    f".claude/commands/{command.slug}.md",
                    markdown_document(
                        command.body,
                        {"description": command.description, **self.target_options(command)},
                    ),
                )

        if FeatureId.AGENTS in enabled:
            writer.manage_dir(".claude/agents", ".md")
            for agent in self.eligible(features.agents):
                frontmatter = {
                    "name": agent.name,
                    "description": agent.description or agent.name,
                    **self.target_options(agent),
                    **self.agent_model_options(features, enabled, agent),
                }
                writer.write_text(f".claude/agents/{agent.name}.md", markdown_document(agent.body, frontmatter))

        if FeatureId.SKILLS in enabled:
            writer.manage_skills(".claude/skills")
            for skill in self.eligible(features.skills):
                self.write_skill(
                    writer,
                    ".claude/skills",
                    skill,
                    {
                        "name": skill.name,
                        "description": skill.description or skill.name,
                        **self.target_options(skill),
                    },
                )

        if FeatureId.HOOKS in enabled:
            writer.manage_json_keys(".claude/settings.json", {"hooks"})
        if FeatureId.HOOKS in enabled and features.hooks.command_count:
            writer.update_json_keys(".claude/settings.json", {"hooks": settings_hooks(features.hooks)})

        if FeatureId.MCP in enabled:
            writer.manage_json_keys(".mcp.json", {"mcpServers"})
        if FeatureId.MCP in enabled and features.mcp.mcp_servers:
            writer.update_json_keys(".mcp.json", features.mcp.to_json_dict())

        if FeatureId.MODELS in enabled:
            writer.manage_file(f".claude/rules/{MODEL_RULE}")
            resolved = self.resolved_models(features)
            if not resolved.is_empty:
                writer.write_text(f".claude/rules/{MODEL_RULE}", markdown_document(model_guidance(resolved)))

    def _render_rules(self, features: MergedFeatures, writer: OutputWriter) -> None:
        rules = ordered_rules(self.eligible(features.rules))
        root_rules = [r for r in rules if r.root]
        detail_rules = [r for r in rules if not r.root]

        writer.manage_file("CLAUDE.md")
        if root_rules:
            writer.write_text("CLAUDE.md", render_sections(root_rules))

        writer.manage_dir(".claude/rules", ".md", skip={MODEL_RULE})
        for rule in detail_rules:
            frontmatter = {
                "description": rule.description,
                "paths": list(rule.globs),
                **self.target_options(rule),
            }
            writer.write_text(f".claude/rules/{rule.slug}.md", markdown_document(rule.body, frontmatter))
