"""
JSON report generator for agentpacks.

Structured output of a compile for programmatic consumption (CI checks,
editor integrations).

Design Principles:
    - Consistent schema: Same structure for every compile
    - Deterministic: No timestamps, targets in registry order
    - Human-readable keys: Descriptive snake_case names
"""

import json
from pathlib import Path
from typing import Any

from agentpacks.compiler import CompileResult
from agentpacks.targets import GenerateResult

REPORT_VERSION = "1.0"


def generate_json_report(result: CompileResult, indent: int = 2) -> str:
    """Serialize a compile result as a JSON string."""
    return json.dumps(compile_result_to_dict(result), indent=indent)


def compile_result_to_dict(result: CompileResult) -> dict[str, Any]:
    """
    Build a report dictionary for a compile.

    Returns:
        Dictionary with packs, overrides and one entry per target
    """
    return {
        "report_version": REPORT_VERSION,
        "success": result.success,
        "packs": [{"name": p.name, "version": p.version, "path": str(p.root_dir)} for p in result.packs],
        "conflicts": [c.to_dict() for c in result.merge.conflicts],
        "targets": [_target_to_dict(r) for r in result.results],
    }


def _target_to_dict(result: GenerateResult) -> dict[str, Any]:
    return {
        "target_id": result.target_id,
        "root": str(result.root) if result.root else None,
        "success": result.success,
        "files_written": [_relative(p, result.root) for p in result.files_written],
        "files_deleted": [_relative(p, result.root) for p in result.files_deleted],
        "skipped": [s.to_dict() for s in result.skipped],
        "errors": [e.to_dict() for e in result.errors],
    }


def _relative(path: Path, root: Path | None) -> str:
    """POSIX path relative to the target root when possible."""
    if root is not None:
        try:
            return path.relative_to(root).as_posix()
        except ValueError:
            pass
    return path.as_posix()
