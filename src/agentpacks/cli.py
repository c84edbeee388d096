"""
CLI entry point for agentpacks.

This module provides the Typer-based command-line interface for agentpacks.
All user interactions flow through these commands.

Commands:
    generate        Compile the workspace packs into every selected tool's layout
    validate        Load and merge the workspace packs without writing anything
    targets         Show which features each target supports
    pack validate   Check the structure of a single pack directory

Architecture Note:
    The CLI is intentionally thin - it parses arguments and delegates to the
    compiler module for actual work. This separation allows the core logic
    to be used programmatically without the CLI.
"""

import json
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.markup import escape

from agentpacks import __version__
from agentpacks.compiler import Compiler
from agentpacks.config import WorkspaceConfig, find_config_file, load_workspace_config
from agentpacks.errors import AgentpacksError, PackError, WorkspaceConfigError
from agentpacks.logging import setup_logging
from agentpacks.pack import PackLoader
from agentpacks.report import (
    generate_json_report,
    print_compile_report,
    print_targets_report,
    print_validate_report,
)

# Initialize Typer app with metadata
app = typer.Typer(
    name="agentpacks",
    help="Compile agent packs into coding-assistant configuration.",
    add_completion=False,
    no_args_is_help=True,
)

# Rich consoles: results on stdout, diagnostics on stderr
console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]agentpacks[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    agentpacks - one set of packs, every coding assistant.

    Load rules, commands, agents, skills, plugins, hooks, MCP servers, models
    and ignore patterns from ordered packs and write them in the layout each tool expects.
    """
    pass


# =============================================================================
# Shared Options
# =============================================================================

ProjectRootOption = Annotated[
    Path,
    typer.Option(
        "--project-root",
        "-C",
        help="Project directory (defaults to the current directory).",
        file_okay=False,
        resolve_path=True,
    ),
]
ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        help="Workspace configuration file (defaults to agentpacks.yaml in the project root).",
        dir_okay=False,
        resolve_path=True,
    ),
]
PackOption = Annotated[
    Optional[list[str]],
    typer.Option(
        "--pack",
        "-p",
        help="Pack directory; repeat in precedence order. Replaces the configured pack list.",
    ),
]
VerboseOption = Annotated[
    bool,
    typer.Option(
        "--verbose",
        help="Log overrides and skipped features.",
    ),
]
JsonOption = Annotated[
    bool,
    typer.Option(
        "--json",
        help="Output results in JSON format.",
    ),
]


def _resolve_config(project_root: Path, config_path: Optional[Path], packs: Optional[list[str]]) -> WorkspaceConfig:
    """
    Build the workspace configuration for a command.

    --pack replaces the configured pack list; without a config file it is
    the whole configuration.

    Raises:
        WorkspaceConfigError: No configuration and no --pack, or invalid file
    """
    path = config_path or find_config_file(project_root)
    if path is None:
        if not packs:
            raise WorkspaceConfigError(
                config_path=str(project_root / "agentpacks.yaml"),
                validation_error="file not found",
                suggestion="Create agentpacks.yaml with a 'packs' list, or pass --pack",
            )
        return WorkspaceConfig(packs=packs)

    config = load_workspace_config(path)
    if packs:
        config = config.model_copy(update={"packs": list(packs)})
    return config


def _fail(error: AgentpacksError, json_output: bool) -> None:
    """Report a load-time error and exit 1."""
    if json_output:
        print(json.dumps({"error": True, **error.to_dict()}, indent=2))
    else:
        err_console.print(f"[red]Error:[/red] {escape(str(error))}")
    raise typer.Exit(code=1)


# =============================================================================
# Commands
# =============================================================================


@app.command()
def generate(
    project_root: ProjectRootOption = Path("."),
    config_path: ConfigOption = None,
    packs: PackOption = None,
    targets: Annotated[
        Optional[list[str]],
        typer.Option(
            "--targets",
            "-t",
            help="Target ids, comma-separated or repeated; '*' for all.",
        ),
    ] = None,
    features: Annotated[
        Optional[list[str]],
        typer.Option(
            "--features",
            "-f",
            help="Feature ids, comma-separated or repeated; '*' for all.",
        ),
    ] = None,
    base_dir: Annotated[
        Optional[str],
        typer.Option(
            "--base-dir",
            help="Output directory relative to the project root.",
        ),
    ] = None,
    delete: Annotated[
        Optional[bool],
        typer.Option(
            "--delete/--no-delete",
            help="Remove generated files that are no longer produced.",
            show_default=False,
        ),
    ] = None,
    global_: Annotated[
        Optional[bool],
        typer.Option(
            "--global/--project",
            help="Write to the user-level root instead of the project.",
            show_default=False,
        ),
    ] = None,
    jobs: Annotated[
        int,
        typer.Option(
            "--jobs",
            "-j",
            min=1,
            help="Number of targets to generate concurrently.",
        ),
    ] = 1,
    model_profile: Annotated[
        Optional[str],
        typer.Option(
            "--model-profile",
            help="models.json profile to apply (e.g. quality, budget).",
        ),
    ] = None,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Compile the workspace packs into each target's file layout.

    Nothing is written if any pack fails to load. Exits 1 if any file could
    not be written.

    Example:
        $ agentpacks generate -t cursor,claudecode --delete
    """
    setup_logging(verbose=verbose, console=err_console)

    try:
        config = _resolve_config(project_root, config_path, packs)
        compiler = Compiler(project_root, config)
        result = compiler.compile(
            targets=targets,
            features=features,
            base_dir=base_dir,
            delete=delete,
            global_=global_,
            jobs=jobs,
            verbose=verbose,
            model_profile=model_profile,
        )
    except AgentpacksError as e:
        _fail(e, json_output)

    if json_output:
        print(generate_json_report(result))
    else:
        print_compile_report(result, console=console, verbose=verbose)

    raise typer.Exit(code=result.exit_code)


@app.command()
def validate(
    project_root: ProjectRootOption = Path("."),
    config_path: ConfigOption = None,
    packs: PackOption = None,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Load and merge the workspace packs without writing anything.

    Prints per-pack feature counts and every override between packs.
    """
    setup_logging(verbose=verbose, console=err_console)

    try:
        config = _resolve_config(project_root, config_path, packs)
        loaded, merge = Compiler(project_root, config).merge()
    except AgentpacksError as e:
        _fail(e, json_output)

    if json_output:
        output = {
            "valid": True,
            "packs": [{"name": p.name, "version": p.version, "path": str(p.root_dir)} for p in loaded],
            "conflicts": [c.to_dict() for c in merge.conflicts],
        }
        print(json.dumps(output, indent=2))
    else:
        print_validate_report(loaded, merge, console=console)


@app.command()
def targets() -> None:
    """Show which features each target supports."""
    print_targets_report(console=console)


# =============================================================================
# Pack Subcommand Group
# =============================================================================

pack_app = typer.Typer(
    name="pack",
    help="Inspect individual packs.",
    no_args_is_help=True,
)
app.add_typer(pack_app, name="pack")


@pack_app.command("validate")
def pack_validate(
    pack_path: Annotated[
        Path,
        typer.Argument(
            help="Path to the pack directory.",
            resolve_path=True,
        ),
    ],
    json_output: JsonOption = False,
) -> None:
    """
    Check one pack's manifest and every feature file.

    Example:
        $ agentpacks pack validate packs/base
    """
    try:
        loader = PackLoader(pack_path)
    except PackError as e:
        _fail(e, json_output)

    errors = loader.validate_structure()

    if json_output:
        print(json.dumps({"path": str(pack_path), "valid": not errors, "errors": errors}, indent=2))
    elif errors:
        err_console.print(f"[red]✗[/red] {escape(str(pack_path))}: {len(errors)} error(s)")
        for message in errors:
            err_console.print(f"  • {escape(message)}")
    else:
        console.print(f"[green]✓[/green] {escape(loader.manifest.name)} {loader.manifest.version} is valid")

    raise typer.Exit(code=1 if errors else 0)


if __name__ == "__main__":
    app()
