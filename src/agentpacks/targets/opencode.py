"""
OpenCode backend.

Layout:
    .opencode/memories/<slug>.md      every eligible rule, root or detail
    .opencode/commands/<slug>.md
    .opencode/agents/<name>.md        subagent frontmatter
    .opencode/skills/<name>/          SKILL.md plus assets
    .opencode/plugins/agentpacks.ts   hooks, as an OpenCode plugin
    .opencode/plugins/agentpacks-<file>
                                      pack plugins, copied
    opencode.json                     `$schema`, `mcp` and model keys
"""

from typing import Any

from agentpacks.models import ResolvedModels
from agentpacks.schema import FeatureId, HookCommand, HooksConfig, McpServer, MergedFeatures, TargetId
from agentpacks.targets.base import BaseTarget
from agentpacks.targets.filesystem import GENERATED_MARKER, SLASH_MARKER, OutputWriter
from agentpacks.targets.render import markdown_document, template

OPENCODE_SCHEMA = "https://opencode.ai/config.json"
HOOKS_PLUGIN = ".opencode/plugins/agentpacks.ts"
PLUGINS_DIR = ".opencode/plugins"
PLUGIN_PREFIX = "agentpacks-"

# Pack hook events -> OpenCode plugin events; other names pass through as-is
HOOK_EVENTS = {
    "sessionStart": "session.created",
    "preToolUse": "tool.execute.before",
    "postToolUse": "tool.execute.after",
    "stop": "session.idle",
    "afterFileEdit": "file.edited",
    "afterShellExecution": "command.executed",
}

# OpenCode gives tool events their own hook keys rather than `event`
TOOL_EVENTS = ("tool.execute.before", "tool.execute.after")

PLUGIN_TEMPLATE = template(
    """// {{ marker }}. Do not edit: changes are overwritten.
export const AgentpacksPlugin = async ({ $ }) => {
  return {
{% for event, commands in tool_events %}
    {{ event | tojson }}: async (input, output) => {
{% for command in commands %}
{% if command.matcher %}
      if (new RegExp({{ command.matcher | tojson }}).test(String(input?.tool ?? ""))) {
        await $`{{ command.command }}`;
      }
{% else %}
      await $`{{ command.command }}`;
{% endif %}
{% endfor %}
    },
{% endfor %}
{% if events %}
    event: async ({ event }) => {
{% for event, commands in events %}
      if (event.type === {{ event | tojson }}) {
{% for command in commands %}
{% if command.matcher %}
        if (new RegExp({{ command.matcher | tojson }}).test(JSON.stringify(event.properties ?? {}))) {
          await $`{{ command.command }}`;
        }
{% else %}
        await $`{{ command.command }}`;
{% endif %}
{% endfor %}
      }
{% endfor %}
    },
{% endif %}
  };
};
"""
)


def _escape_template_literal(command: str) -> str:
    return command.replace("\\", "\\\\").replace("`", "\\`").replace("${", "\\${")


def opencode_event(event: str) -> str:
    return HOOK_EVENTS.get(event, event)


def _plugin_command(hook: HookCommand) -> dict[str, str | None]:
    return {"command": _escape_template_literal(hook.command), "matcher": hook.matcher}


def render_plugin(hooks: HooksConfig) -> str | None:
    """
    Render hooks as a plugin module, or None when there are no commands.

    Event names without an OpenCode mapping are used verbatim. A matcher
    becomes a regular-expression guard: on the tool name for tool events,
    on the serialized event properties otherwise.
    """
    tool_events: dict[str, list[dict[str, str | None]]] = {}
    events: dict[str, list[dict[str, str | None]]] = {}
    for event, commands in hooks.hooks.items():
        if not commands:
            continue
        mapped = opencode_event(event)
        bucket = tool_events if mapped in TOOL_EVENTS else events
        bucket.setdefault(mapped, []).extend(_plugin_command(c) for c in commands)
    if not tool_events and not events:
        return None
    return PLUGIN_TEMPLATE.render(
        marker=GENERATED_MARKER,
        tool_events=list(tool_events.items()),
        events=list(events.items()),
    )


def plugin_file(content: str) -> str:
    """A pack plugin with the generated marker as its first line."""
    return f"{SLASH_MARKER}\n{content.lstrip(chr(0xFEFF))}"


def mcp_entry(server: McpServer) -> dict[str, Any]:
    """An MCP server in opencode.json's `local`/`remote` dialect."""
    if server.is_remote:
        entry: dict[str, Any] = {"type": "remote", "url": server.url, "enabled": True}
        if server.headers:
            entry["headers"] = dict(server.headers)
        return entry
    entry = {"type": "local", "command": [server.command, *server.args], "enabled": True}
    if server.env:
        entry["environment"] = dict(server.env)
    return entry


def model_keys(resolved: ResolvedModels) -> dict[str, Any]:
    """
    opencode.json keys for the resolved models.

    Only keys with a value are returned; per-agent assignments go under
    `agent.<name>`.
    """
    keys: dict[str, Any] = {}
    if resolved.default:
        keys["model"] = resolved.default
    if resolved.small:
        keys["small_model"] = resolved.small
    if resolved.providers:
        keys["provider"] = {
            name: provider.model_dump(exclude_defaults=True) for name, provider in sorted(resolved.providers.items())
        }
    if resolved.agents:
        keys["agent"] = {
            name: agent.model_dump(exclude_none=True) for name, agent in sorted(resolved.agents.items())
        }
    return keys


MODEL_KEYS = ("model", "small_model", "provider", "agent")


class OpenCodeTarget(BaseTarget):
    """Writes the .opencode/ tree and opencode.json."""

    id = TargetId.OPENCODE
    name = "OpenCode"
    supported_features = frozenset(
        {
            FeatureId.RULES,
            FeatureId.COMMANDS,
            FeatureId.AGENTS,
            FeatureId.SKILLS,
            FeatureId.PLUGINS,
            FeatureId.HOOKS,
            FeatureId.MCP,
            FeatureId.MODELS,
        }
    )

    def render(self, features: MergedFeatures, enabled: frozenset[FeatureId], writer: OutputWriter) -> None:
        if FeatureId.RULES in enabled:
            writer.manage_dir(".opencode/memories", ".md")
            for rule in self.eligible(features.rules):
                writer.write_text(
                    f".opencode/memories/{rule.slug}.md",
                    markdown_document(rule.body, {"description": rule.description, **self.target_options(rule)}),
                )

        if FeatureId.COMMANDS in enabled:
            writer.manage_dir(".opencode/commands", ".md")
            for command in self.eligible(features.commands):
                writer.write_text(
                    f".opencode/commands/{command.slug}.md",
                    markdown_document(
                        command.body,
                        {"description": command.description, **self.target_options(command)},
                    ),
                )

        if FeatureId.AGENTS in enabled:
            writer.manage_dir(".opencode/agents", ".md")
            for agent in self.eligible(features.agents):
                frontmatter = {
                    "description": agent.description or agent.name,
                    "mode": "subagent",
                    **self.target_options(agent),
                    **self.agent_model_options(features, enabled, agent, with_sampling=True),
                }
                writer.write_text(f".opencode/agents/{agent.name}.md", markdown_document(agent.body, frontmatter))

        if FeatureId.SKILLS in enabled:
            writer.manage_skills(".opencode/skills")
            for skill in self.eligible(features.skills):
                self.write_skill(
                    writer,
                    ".opencode/skills",
                    skill,
                    {"name": skill.name, "description": skill.description, **self.target_options(skill)},
                )

        if FeatureId.PLUGINS in enabled:
            for suffix in (".ts", ".js", ".mjs"):
                writer.manage_dir(PLUGINS_DIR, suffix, prefix=PLUGIN_PREFIX)
            for plugin in self.eligible(features.plugins):
                writer.write_text(f"{PLUGINS_DIR}/{PLUGIN_PREFIX}{plugin.name}", plugin_file(plugin.content))

        if FeatureId.HOOKS in enabled:
            writer.manage_file(HOOKS_PLUGIN)
            plugin = render_plugin(features.hooks)
            if plugin is not None:
                writer.write_text(HOOKS_PLUGIN, plugin)

        config: dict[str, Any] = {}
        if FeatureId.MCP in enabled:
            writer.manage_json_keys("opencode.json", {"mcp"}, companions={"$schema"})
            if features.mcp.mcp_servers:
                config["mcp"] = {name: mcp_entry(server) for name, server in features.mcp.mcp_servers.items()}

        if FeatureId.MODELS in enabled:
            writer.manage_json_keys("opencode.json", MODEL_KEYS, companions={"$schema"})
            config.update(model_keys(self.resolved_models(features)))

        if config:
            writer.update_json_keys("opencode.json", {"$schema": OPENCODE_SCHEMA, **config})
