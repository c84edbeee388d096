"""
Console report generator for agentpacks.

Renders compile and validate outcomes with Rich: one table row per target
(written, deleted, skipped, failed), then any failed files, so a partial
success is visible at a glance.
"""

from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from agentpacks.compiler import CompileResult
from agentpacks.merge import MergeResult
from agentpacks.schema import FEATURE_IDS, Pack
from agentpacks.targets import GenerateResult, all_targets

# Status icons
ICON_SUCCESS = "[green]✓[/green]"
ICON_ERROR = "[red]✗[/red]"


def _display_path(path: Path, root: Path | None) -> str:
    if root is not None:
        try:
            return str(path.relative_to(root))
        except ValueError:
            pass
    return str(path)


def _count(value: int, style: str) -> str:
    return f"[{style}]{value}[/{style}]" if value else "0"


def print_compile_report(result: CompileResult, console: Console | None = None, verbose: bool = False) -> None:
    """
    Print the per-target summary of a compile.

    Args:
        result: The compile to report on
        console: Rich Console instance (creates one if not provided)
        verbose: Also list every written and deleted file
    """
    if console is None:
        console = Console()

    table = Table(show_header=True, header_style="bold")
    table.add_column("Status", width=6, justify="center")
    table.add_column("Target", style="cyan")
    table.add_column("Written", justify="right")
    table.add_column("Deleted", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Failed", justify="right")

    for target_result in result.results:
        table.add_row(
            ICON_SUCCESS if target_result.success else ICON_ERROR,
            target_result.target_id,
            str(len(target_result.files_written)),
            _count(len(target_result.files_deleted), "yellow"),
            _count(len(target_result.skipped), "dim"),
            _count(len(target_result.errors), "red"),
        )

    console.print(table)

    if verbose:
        for target_result in result.results:
            _print_files(console, target_result)
        if result.merge.conflicts:
            console.print()
            console.print("[bold]Overrides[/bold]")
            for conflict in result.merge.conflicts:
                console.print(f"  • {conflict.describe()}")

    failures = [e for r in result.results for e in r.errors]
    if failures:
        console.print()
        console.print(f"[bold red]Failed files ({len(failures)}):[/bold red]")
        for error in failures:
            console.print(f"  {ICON_ERROR} {escape(error.message)}")


def _print_files(console: Console, result: GenerateResult) -> None:
    if not (result.files_written or result.files_deleted):
        return
    console.print()
    console.print(f"[bold]{result.target_id}[/bold]")
    for path in result.files_written:
        console.print(f"  [green]+[/green] {_display_path(path, result.root)}")
    for path in result.files_deleted:
        console.print(f"  [yellow]-[/yellow] {_display_path(path, result.root)}")
    for skip in result.skipped:
        console.print(f"  [dim]{escape(skip.describe())}[/dim]")


def print_validate_report(packs: list[Pack], merge: MergeResult, console: Console | None = None) -> None:
    """Print per-pack feature counts and the override conflicts of a merge."""
    if console is None:
        console = Console()

    table = Table(show_header=True, header_style="bold")
    table.add_column("Pack", style="cyan", no_wrap=True)
    table.add_column("Version")
    table.add_column("Rules", justify="right")
    table.add_column("Commands", justify="right")
    table.add_column("Agents", justify="right")
    table.add_column("Skills", justify="right")
    table.add_column("Plugins", justify="right")
    table.add_column("Hooks", justify="right")
    table.add_column("MCP", justify="right")
    table.add_column("Models", justify="right")
    table.add_column("Ignore", justify="right")

    for pack in packs:
        table.add_row(
            pack.name,
            pack.version,
            str(len(pack.rules)),
            str(len(pack.commands)),
            str(len(pack.agents)),
            str(len(pack.skills)),
            str(len(pack.plugins)),
            str(pack.hooks.command_count if pack.hooks else 0),
            str(len(pack.mcp.mcp_servers) if pack.mcp else 0),
            str(pack.models.entry_count if pack.models else 0),
            str(len(pack.ignore_patterns)),
        )

    console.print(table)

    if merge.conflicts:
        console.print()
        console.print(f"[bold]Overrides ({len(merge.conflicts)}):[/bold]")
        for conflict in merge.conflicts:
            console.print(f"  • {conflict.describe()}")

    console.print()
    console.print(f"{ICON_SUCCESS} {len(packs)} pack(s) valid")


def print_targets_report(console: Console | None = None) -> None:
    """
    Print the features each backend supports.

    One row per target with the supported features as a wrapping list, so
    the table fits a narrow terminal without truncating target ids.
    """
    if console is None:
        console = Console()

    table = Table(show_header=True, header_style="bold")
    table.add_column("Target", style="cyan", no_wrap=True)
    table.add_column("Name", no_wrap=True)
    table.add_column("Features")

    for target in all_targets():
        supported = [f.value for f in FEATURE_IDS if target.supports_feature(f)]
        table.add_row(target.id.value, target.name, ", ".join(supported))

    console.print(table)
