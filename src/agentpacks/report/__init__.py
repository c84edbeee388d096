"""
Reporting module for agentpacks.

Output formats:
    - Console: Rich tables (per-target summary, validate summary,
      capability matrix)
    - JSON: Structured compile report for programmatic consumption

Example:
    from agentpacks.report import generate_json_report, print_compile_report

    print_compile_report(result)
    print(generate_json_report(result))
"""

from agentpacks.report.console import print_compile_report, print_targets_report, print_validate_report
from agentpacks.report.json import compile_result_to_dict, generate_json_report

__all__ = [
    "compile_result_to_dict",
    "generate_json_report",
    "print_compile_report",
    "print_targets_report",
    "print_validate_report",
]
