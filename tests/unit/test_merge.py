"""
Unit tests for the feature merger.

Tests cover:
- Keyed override (later pack wins, conflict recorded)
- Order preservation
- Root rules as a category
- Hooks additivity
- MCP override
- Ignore concatenation
- Plugins and models
- Determinism
"""

import logging
from pathlib import Path

import pytest

from agentpacks.merge import FeatureMerger, merge_packs
from agentpacks.schema import (
    Agent,
    AgentModel,
    HookCommand,
    HooksConfig,
    McpConfig,
    McpServer,
    ModelProfile,
    ModelsConfig,
    Pack,
    Plugin,
    ProviderConfig,
    RoutingRule,
    Rule,
    Skill,
)


def _pack(name: str, **features) -> Pack:
    return Pack(name=name, version="1.0.0", root_dir=Path(f"/packs/{name}"), **features)


def _rule(slug: str, pack: str, body: str = "", root: bool = False) -> Rule:
    return Rule(slug=slug, body=body, root=root, source_pack=pack)


class TestKeyedMerge:
    """Tests for rules, commands, agents and skills."""

    def test_union_preserves_order(self) -> None:
        """Distinct keys are unioned in pack order."""
        a = _pack("a", rules=(_rule("one", "a"), _rule("two", "a")))
        b = _pack("b", rules=(_rule("three", "b"),))
        result = merge_packs([a, b])
        assert [r.slug for r in result.features.rules] == ["one", "two", "three"]
        assert result.conflicts == []

    def test_later_pack_wins(self) -> None:
        """Same agent name in [A, B]: B's record is kept."""
        a = _pack("a", agents=(Agent(name="reviewer", body="A body", source_pack="a"),))
        b = _pack("b", agents=(Agent(name="reviewer", body="B body", source_pack="b"),))
        result = merge_packs([a, b])

        assert len(result.features.agents) == 1
        assert result.features.agents[0].body == "B body"
        assert len(result.conflicts) == 1
        conflict = result.conflicts[0]
        assert conflict.feature == "agents"
        assert conflict.key == "reviewer"
        assert conflict.previous_pack == "a"
        assert conflict.winning_pack == "b"

    def test_winner_takes_later_position(self) -> None:
        """An overridden entry moves to the winning pack's position."""
        a = _pack("a", rules=(_rule("shared", "a"), _rule("zeta", "a")))
        b = _pack("b", rules=(_rule("alpha", "b"), _rule("shared", "b")))
        result = merge_packs([a, b])
        assert [(r.slug, r.source_pack) for r in result.features.rules] == [
            ("zeta", "a"),
            ("alpha", "b"),
            ("shared", "b"),
        ]

    def test_three_packs_chain(self) -> None:
        """Each override is recorded."""
        packs = [_pack(n, skills=(Skill(name="s", source_pack=n),)) for n in ("a", "b", "c")]
        result = merge_packs(packs)
        assert result.features.skills[0].source_pack == "c"
        assert [(c.previous_pack, c.winning_pack) for c in result.conflicts] == [("a", "b"), ("b", "c")]

    def test_override_logged_at_debug(self, caplog: pytest.LogCaptureFixture) -> None:
        """Overrides are logged, not silent."""
        a = _pack("a", rules=(_rule("x", "a"),))
        b = _pack("b", rules=(_rule("x", "b"),))
        with caplog.at_level(logging.DEBUG, logger="agentpacks"):
            merge_packs([a, b])
        assert "rules 'x' from pack 'a' overridden by pack 'b'" in caplog.text


class TestRootRules:
    """Tests for root rule handling."""

    def test_all_root_rules_kept(self) -> None:
        """Root is a category; distinct root rules all survive."""
        a = _pack("a", rules=(_rule("overview", "a", root=True),))
        b = _pack("b", rules=(_rule("conventions", "b", root=True), _rule("detail", "b")))
        features = merge_packs([a, b]).features
        assert [r.slug for r in features.root_rules()] == ["overview", "conventions"]

    def test_root_override(self) -> None:
        """A same-slug root rule is replaced, not duplicated."""
        a = _pack("a", rules=(_rule("overview", "a", body="old", root=True),))
        b = _pack("b", rules=(_rule("overview", "b", body="new", root=True),))
        features = merge_packs([a, b]).features
        assert [r.body for r in features.root_rules()] == ["new"]


class TestHooksMerge:
    """Tests for hooks additivity."""

    def test_hooks_are_additive(self) -> None:
        """Two afterFileEdit hooks give a list of length 2, in pack order."""
        a = _pack("a", hooks=HooksConfig(hooks={"afterFileEdit": (HookCommand(command="fmt"),)}))
        b = _pack("b", hooks=HooksConfig(hooks={"afterFileEdit": (HookCommand(command="lint"),)}))
        result = merge_packs([a, b])
        assert [h.command for h in result.features.hooks.hooks["afterFileEdit"]] == ["fmt", "lint"]
        assert result.conflicts == []

    def test_duplicates_preserved(self) -> None:
        """Identical commands are not de-duplicated."""
        hooks = HooksConfig(hooks={"stop": (HookCommand(command="notify"),)})
        result = merge_packs([_pack("a", hooks=hooks), _pack("b", hooks=hooks)])
        assert len(result.features.hooks.hooks["stop"]) == 2

    def test_no_hooks(self) -> None:
        """Packs without hooks give an empty version-1 config."""
        hooks = merge_packs([_pack("a")]).features.hooks
        assert hooks.version == 1
        assert hooks.hooks == {}


class TestMcpMerge:
    """Tests for MCP server merging."""

    def test_later_server_wins(self) -> None:
        """Same server name: later pack wins and the override is recorded."""
        a = _pack("a", mcp=McpConfig(mcp_servers={"db": McpServer(command="old"), "web": McpServer(command="w")}))
        b = _pack("b", mcp=McpConfig(mcp_servers={"db": McpServer(command="new")}))
        result = merge_packs([a, b])
        servers = result.features.mcp.mcp_servers
        assert servers["db"].command == "new"
        assert list(servers) == ["web", "db"]
        assert result.conflicts[0].feature == "mcp"
        assert result.conflicts[0].previous_pack == "a"


class TestIgnoreMerge:
    """Tests for ignore patterns."""

    def test_concatenated_with_duplicates(self) -> None:
        """Patterns are concatenated in pack order."""
        a = _pack("a", ignore_patterns=("dist/", "node_modules/"))
        b = _pack("b", ignore_patterns=("dist/",))
        assert merge_packs([a, b]).features.ignore_patterns == ("dist/", "node_modules/", "dist/")


class TestPluginsMerge:
    """Tests for plugin merging."""

    def test_same_file_name_overridden(self) -> None:
        """Plugins are keyed by file name."""
        a = _pack("a", plugins=(Plugin(name="guard.ts", content="a", source_pack="a"),))
        b = _pack("b", plugins=(Plugin(name="guard.ts", content="b", source_pack="b"),))
        result = merge_packs([a, b])
        assert [p.content for p in result.features.plugins] == ["b"]
        assert result.conflicts[0].feature == "plugins"


class TestModelsMerge:
    """Tests for models.json merging."""

    def test_later_default_wins(self) -> None:
        """Scalars are last-pack-wins, with the override recorded."""
        a = _pack("a", models=ModelsConfig(default="x/a", small="x/small"))
        b = _pack("b", models=ModelsConfig(default="x/b"))
        result = merge_packs([a, b])
        assert result.features.models.default == "x/b"
        assert result.features.models.small == "x/small"
        assert [(c.feature, c.key, c.previous_pack) for c in result.conflicts] == [("models", "default", "a")]

    def test_named_entries(self) -> None:
        """Agents and profiles are keyed by name."""
        a = _pack(
            "a",
            models=ModelsConfig(
                agents={"reviewer": AgentModel(model="x/a"), "planner": AgentModel(model="x/p")},
                profiles={"budget": ModelProfile(default="x/cheap")},
            ),
        )
        b = _pack("b", models=ModelsConfig(agents={"reviewer": AgentModel(model="x/b")}))
        result = merge_packs([a, b])
        models = result.features.models
        assert models.agents["reviewer"].model == "x/b"
        assert list(models.agents) == ["planner", "reviewer"]
        assert models.profiles["budget"].default == "x/cheap"
        assert [c.key for c in result.conflicts] == ["agents.reviewer"]

    def test_providers_merged_per_key(self) -> None:
        """Provider options from both packs are combined."""
        a = _pack(
            "a",
            models=ModelsConfig(providers={"openai": ProviderConfig(options={"timeout": 1, "baseURL": "u"})}),
        )
        b = _pack("b", models=ModelsConfig(providers={"openai": ProviderConfig(options={"timeout": 2})}))
        options = merge_packs([a, b]).features.models.providers["openai"].options
        assert options == {"timeout": 2, "baseURL": "u"}

    def test_routing_concatenated(self) -> None:
        """Routing rules keep pack order."""
        a = _pack("a", models=ModelsConfig(routing=(RoutingRule(when={"task": "review"}, use="quality"),)))
        b = _pack("b", models=ModelsConfig(routing=(RoutingRule(when={"task": "chore"}, use="budget"),)))
        routing = merge_packs([a, b]).features.models.routing
        assert [r.use for r in routing] == ["quality", "budget"]

    def test_no_models(self) -> None:
        """Packs without models.json merge to an empty config."""
        assert merge_packs([_pack("a")]).features.models.entry_count == 0



class TestDeterminism:
    """Tests for purity of the merge."""

    def test_same_input_same_output(self) -> None:
        """Merging twice gives equal results."""
        packs = [
            _pack("a", rules=(_rule("x", "a"),), ignore_patterns=("a",)),
            _pack("b", rules=(_rule("x", "b"),)),
        ]
        merger = FeatureMerger(packs)
        first = merger.merge()
        second = merger.merge()
        assert first.features == second.features
        assert first.conflicts == second.conflicts

    def test_pack_names(self) -> None:
        """Merged features remember the pack order."""
        assert merge_packs([_pack("a"), _pack("b")]).features.pack_names == ("a", "b")

    def test_empty(self) -> None:
        """No packs, no features."""
        features = merge_packs([]).features
        assert features.rules == ()
        assert features.mcp.mcp_servers == {}
