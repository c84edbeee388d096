"""GitHub Copilot backend: every eligible rule in .github/copilot-instructions.md."""

from agentpacks.schema import FeatureId, MergedFeatures, TargetId
from agentpacks.targets.base import BaseTarget
from agentpacks.targets.filesystem import OutputWriter
from agentpacks.targets.render import ordered_rules, render_sections

INSTRUCTIONS_FILE = ".github/copilot-instructions.md"


class CopilotTarget(BaseTarget):
    id = TargetId.COPILOT
    name = "GitHub Copilot"
    supported_features = frozenset({FeatureId.RULES})

    def render(self, features: MergedFeatures, enabled: frozenset[FeatureId], writer: OutputWriter) -> None:
        if FeatureId.RULES not in enabled:
            return
        writer.manage_file(INSTRUCTIONS_FILE)
        rules = ordered_rules(self.eligible(features.rules))
        if rules:
            writer.write_text(INSTRUCTIONS_FILE, render_sections(rules, title="Copilot Instructions"))
