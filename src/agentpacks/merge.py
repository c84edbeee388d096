"""
Feature merger: fold an ordered list of packs into one MergedFeatures.

Merge Rules:
    - Rules, commands, agents, skills, plugins: keyed by slug/name, the later pack wins
      outright and the override is recorded as an OverrideConflict
    - Root rules: every root rule survives; root is a category, not a singleton
    - Hooks: additive per event, in pack order, duplicates kept
    - MCP servers: keyed by server name, later pack wins
    - Models: default, small, agents, profiles and overrides follow later-pack-wins
      (overrides recorded under keys such as "profiles.quality"); provider
      settings merge per key; routing rules are concatenated
    - Ignore patterns: concatenated in pack order, duplicates kept

The merger is not target aware; selector filtering belongs to the backends.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Protocol, TypeVar

from agentpacks.errors import OverrideConflict
from agentpacks.schema import (
    AgentModel,
    FeatureId,
    HookCommand,
    HooksConfig,
    McpConfig,
    McpServer,
    MergedFeatures,
    ModelOverride,
    ModelProfile,
    ModelsConfig,
    Pack,
    ProviderConfig,
    RoutingRule,
)

logger = logging.getLogger(__name__)


class _Keyed(Protocol):
    @property
    def key(self) -> str: ...

    @property
    def source_pack(self) -> str: ...


K = TypeVar("K", bound=_Keyed)


@dataclass
class MergeResult:
    """
    Result of merging packs.

    Attributes:
        features: The merged features handed to every backend
        conflicts: Every same-key override, in the order it was resolved
    """

    features: MergedFeatures
    conflicts: list[OverrideConflict] = field(default_factory=list)


class FeatureMerger:
    """
    Merges packs in declaration order.

    Usage:
        merger = FeatureMerger(packs)
        result = merger.merge()
        result.features.rules
    """

    def __init__(self, packs: Sequence[Pack]) -> None:
        self.packs = list(packs)
        self._conflicts: list[OverrideConflict] = []

    def merge(self) -> MergeResult:
        """Merge all packs. Pure: same packs in, same result out."""
        self._conflicts = []

        features = MergedFeatures(
            rules=self._merge_keyed(FeatureId.RULES, (p.rules for p in self.packs)),
            commands=self._merge_keyed(FeatureId.COMMANDS, (p.commands for p in self.packs)),
            agents=self._merge_keyed(FeatureId.AGENTS, (p.agents for p in self.packs)),
            skills=self._merge_keyed(FeatureId.SKILLS, (p.skills for p in self.packs)),
            plugins=self._merge_keyed(FeatureId.PLUGINS, (p.plugins for p in self.packs)),
            hooks=self._merge_hooks(),
            mcp=self._merge_mcp(),
            models=self._merge_models(),
            ignore_patterns=tuple(
                pattern for pack in self.packs for pattern in pack.ignore_patterns
            ),
            pack_names=tuple(p.name for p in self.packs),
        )
        return MergeResult(features=features, conflicts=list(self._conflicts))

    def _record(self, feature: FeatureId, key: str, previous: str, winner: str) -> None:
        conflict = OverrideConflict(
            feature=feature.value,
            key=key,
            previous_pack=previous,
            winning_pack=winner,
        )
        self._conflicts.append(conflict)
        logger.debug("Override: %s", conflict.describe())

    def _merge_keyed(self, feature: FeatureId, groups: Iterable[Sequence[K]]) -> tuple[K, ...]:
        """
        Union keyed entries; a later entry replaces an earlier one.

        The replacement is moved to the winner's position so the result stays
        ordered by (pack order, declaration order).
        """
        merged: dict[str, K] = {}
        for group in groups:
            for item in group:
                previous = merged.pop(item.key, None)
                if previous is not None:
                    self._record(feature, item.key, previous.source_pack, item.source_pack)
                merged[item.key] = item
        return tuple(merged.values())

    def _merge_hooks(self) -> HooksConfig:
        events: dict[str, list[HookCommand]] = {}
        for pack in self.packs:
            if pack.hooks is None:
                continue
            for event, commands in pack.hooks.hooks.items():
                events.setdefault(event, []).extend(commands)
        return HooksConfig(
            version=1,
            hooks={event: tuple(commands) for event, commands in events.items()},
        )

    def _merge_mcp(self) -> McpConfig:
        servers: dict[str, McpServer] = {}
        owners: dict[str, str] = {}
        for pack in self.packs:
            if pack.mcp is None:
                continue
            for name, server in pack.mcp.mcp_servers.items():
                if name in servers:
                    self._record(FeatureId.MCP, name, owners[name], pack.name)
                    del servers[name]
                servers[name] = server
                owners[name] = pack.name
        return McpConfig(mcp_servers=servers)

    def _merge_models(self) -> ModelsConfig:
        """
        Fold every pack's models.json.

        Scalars and named entries follow last-pack-wins; provider settings are
        merged per key; routing rules are concatenated in pack order.
        """
        default: str | None = None
        small: str | None = None
        agents: dict[str, AgentModel] = {}
        profiles: dict[str, ModelProfile] = {}
        providers: dict[str, ProviderConfig] = {}
        routing: list[RoutingRule] = []
        overrides: dict[str, ModelOverride] = {}
        owners: dict[str, str] = {}

        def claim(key: str, pack_name: str) -> None:
            if key in owners:
                self._record(FeatureId.MODELS, key, owners[key], pack_name)
            owners[key] = pack_name

        for pack in self.packs:
            models = pack.models
            if models is None:
                continue
            if models.default is not None:
                claim("default", pack.name)
                default = models.default
            if models.small is not None:
                claim("small", pack.name)
                small = models.small
            for section, source, target in (
                ("agents", models.agents, agents),
                ("profiles", models.profiles, profiles),
                ("overrides", models.overrides, overrides),
            ):
                for name, value in source.items():
                    claim(f"{section}.{name}", pack.name)
                    target.pop(name, None)
                    target[name] = value
            for name, provider in models.providers.items():
                previous = providers.get(name)
                if previous is None:
                    providers[name] = provider
                    continue
                providers[name] = ProviderConfig(
                    options={**previous.options, **provider.options},
                    models={**previous.models, **provider.models},
                )
            routing.extend(models.routing)

        return ModelsConfig(
            default=default,
            small=small,
            agents=agents,
            profiles=profiles,
            providers=providers,
            routing=tuple(routing),
            overrides=overrides,
        )


def merge_packs(packs: Sequence[Pack]) -> MergeResult:
    """Convenience wrapper around FeatureMerger(packs).merge()."""
    return FeatureMerger(packs).merge()
