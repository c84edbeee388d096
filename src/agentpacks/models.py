"""
Model selection for agentpacks.

A pack's models.json declares default and small models, per-agent model
assignments, named profiles, provider options, routing rules and per-target
overrides. Backends never read ModelsConfig directly; they ask for the
ResolvedModels of one target under the active profile.

Resolution Order:
    1. Base values (default, small, agents)
    2. The active profile, if one is selected and declared
    3. The override for the target being generated, if any

Secret Scanning:
    models.json is meant to be shared; credentials belong in the tool's own
    environment. scan_models_for_secrets() flags values that look like keys
    or tokens.
"""

import json
import logging
import re
from dataclasses import dataclass, field

from agentpacks.schema import AgentModel, ModelProfile, ModelsConfig, ProviderConfig, RoutingRule

logger = logging.getLogger(__name__)

SECRET_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"[\"']api[_-]?key[\"']\s*:", re.IGNORECASE),
    re.compile(r"[\"']apiKey[\"']\s*:", re.IGNORECASE),
    re.compile(r"[\"']secret[\"']\s*:", re.IGNORECASE),
    re.compile(r"[\"']password[\"']\s*:", re.IGNORECASE),
    re.compile(r"[\"'](?:auth_token|access_token|bearer_token)[\"']\s*:", re.IGNORECASE),
    re.compile(r"[\"']private[_-]?key[\"']\s*:", re.IGNORECASE),
    re.compile(r"-----BEGIN\s+(RSA|EC|DSA|OPENSSH|PGP)\s+PRIVATE\s+KEY-----"),
    re.compile(r"sk-[a-zA-Z0-9]{20,}"),
    re.compile(r"Bearer\s+[a-zA-Z0-9._-]{20,}"),
)


@dataclass
class ResolvedModels:
    """
    Model choices for one target.

    Attributes:
        default: Main model after profile and override resolution
        small: Lightweight model after profile and override resolution
        agents: Agent name -> model assignment
        providers: Provider options, passed through unchanged
        routing: Routing rules, in declaration order
        profiles: Every declared profile, for guidance documents
        active_profile: Profile applied, None when none was applied
    """

    default: str | None = None
    small: str | None = None
    agents: dict[str, AgentModel] = field(default_factory=dict)
    providers: dict[str, ProviderConfig] = field(default_factory=dict)
    routing: list[RoutingRule] = field(default_factory=list)
    profiles: dict[str, ModelProfile] = field(default_factory=dict)
    active_profile: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (
            self.default or self.small or self.agents or self.providers or self.routing or self.profiles
        )


def resolve_models(
    config: ModelsConfig,
    profile: str | None = None,
    target_id: str | None = None,
) -> ResolvedModels:
    """
    Resolve the model choices for a target.

    An unknown profile is logged and ignored; base values are used instead.
    """
    resolved = ResolvedModels(
        default=config.default,
        small=config.small,
        agents=dict(config.agents),
        providers=dict(config.providers),
        routing=list(config.routing),
        profiles=dict(config.profiles),
    )

    if profile is not None:
        selected = config.profiles.get(profile)
        if selected is None:
            logger.warning(
                "Unknown model profile '%s'; known profiles: %s",
                profile,
                ", ".join(config.profiles) or "none",
            )
        else:
            resolved.active_profile = profile
            resolved.default = selected.default or resolved.default
            resolved.small = selected.small or resolved.small
            resolved.agents.update(selected.agents)

    if target_id is not None and target_id in config.overrides:
        override = config.overrides[target_id]
        resolved.default = override.default or resolved.default
        resolved.small = override.small or resolved.small
        resolved.agents.update(override.agents)

    return resolved


def resolve_agent_model(
    resolved: ResolvedModels,
    agent_name: str,
    fallback: str | None = None,
) -> AgentModel | None:
    """
    The model for one agent.

    An assignment in models.json wins over the model named in the agent's
    own frontmatter (the fallback).
    """
    if agent_name in resolved.agents:
        return resolved.agents[agent_name]
    if fallback:
        return AgentModel(model=fallback)
    return None


def scan_models_for_secrets(config: ModelsConfig) -> list[str]:
    """One message per secret pattern found anywhere in the config."""
    text = json.dumps(config.model_dump(mode="json", exclude_defaults=True))
    return [
        f"Potential secret detected in models.json matching pattern: {pattern.pattern}"
        for pattern in SECRET_PATTERNS
        if pattern.search(text)
    ]
