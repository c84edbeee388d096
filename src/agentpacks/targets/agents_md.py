"""AGENTS.md backend: every eligible rule concatenated into one root file."""

from agentpacks.schema import FeatureId, MergedFeatures, TargetId
from agentpacks.targets.base import BaseTarget
from agentpacks.targets.filesystem import OutputWriter
from agentpacks.targets.render import ordered_rules, render_sections

AGENTS_FILE = "AGENTS.md"


class AgentsMdTarget(BaseTarget):
    id = TargetId.AGENTS_MD
    name = "AGENTS.md"
    supported_features = frozenset({FeatureId.RULES})

    def render(self, features: MergedFeatures, enabled: frozenset[FeatureId], writer: OutputWriter) -> None:
        if FeatureId.RULES not in enabled:
            return
        writer.manage_file(AGENTS_FILE)
        rules = ordered_rules(self.eligible(features.rules))
        if rules:
            writer.write_text(AGENTS_FILE, render_sections(rules, title="AGENTS.md"))
