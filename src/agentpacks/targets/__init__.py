"""
Target backends for agentpacks.

TARGETS maps every target id to its backend class, in the order backends run
and are reported.
"""

from agentpacks.errors import UnknownTargetError
from agentpacks.schema import TargetId
from agentpacks.targets.agents_md import AgentsMdTarget
from agentpacks.targets.base import (
    BaseTarget,
    GenerateOptions,
    GenerateResult,
    ProjectRootResolver,
    RootResolver,
    UserRootResolver,
)
from agentpacks.targets.claude_code import ClaudeCodeTarget
from agentpacks.targets.codex_cli import CodexCliTarget
from agentpacks.targets.copilot import CopilotTarget
from agentpacks.targets.cursor import CursorTarget
from agentpacks.targets.gemini_cli import GeminiCliTarget
from agentpacks.targets.opencode import OpenCodeTarget

TARGETS: dict[TargetId, type[BaseTarget]] = {
    TargetId.OPENCODE: OpenCodeTarget,
    TargetId.CURSOR: CursorTarget,
    TargetId.CLAUDE_CODE: ClaudeCodeTarget,
    TargetId.CODEX_CLI: CodexCliTarget,
    TargetId.GEMINI_CLI: GeminiCliTarget,
    TargetId.COPILOT: CopilotTarget,
    TargetId.AGENTS_MD: AgentsMdTarget,
}


def get_target(target_id: TargetId | str) -> BaseTarget:
    """
    Instantiate the backend for a target id.

    Raises:
        UnknownTargetError: If no backend implements the id
    """
    try:
        return TARGETS[TargetId(target_id)]()
    except ValueError:
        raise UnknownTargetError(
            target_id=str(target_id),
            known=[t.value for t in TARGETS],
        ) from None


def all_targets() -> list[BaseTarget]:
    return [cls() for cls in TARGETS.values()]


__all__ = [
    "TARGETS",
    "AgentsMdTarget",
    "BaseTarget",
    "ClaudeCodeTarget",
    "CodexCliTarget",
    "CopilotTarget",
    "CursorTarget",
    "GeminiCliTarget",
    "GenerateOptions",
    "GenerateResult",
    "OpenCodeTarget",
    "ProjectRootResolver",
    "RootResolver",
    "UserRootResolver",
    "all_targets",
    "get_target",
]
