"""
Integration tests for the CLI.

Tests cover:
- generate (config file, --pack, selection, --json, failures)
- validate
- targets
- pack validate
- --version
"""

import json
from collections.abc import Callable
from pathlib import Path

import pytest
from typer.testing import CliRunner

from agentpacks import __version__
from agentpacks.cli import app

MakePack = Callable[..., Path]

runner = CliRunner()


@pytest.fixture
def workspace(project_dir: Path, scenario_pack: Path) -> Path:
    """A project with an agentpacks.yaml naming the scenario pack."""
    (project_dir / "agentpacks.yaml").write_text(f"packs:\n  - {scenario_pack}\n")
    return project_dir


# =============================================================================
# generate
# =============================================================================


class TestGenerateCommand:
    """Tests for `agentpacks generate`."""

    def test_generate_from_config(self, workspace: Path) -> None:
        """generate reads agentpacks.yaml and writes every target."""
        result = runner.invoke(app, ["generate", "-C", str(workspace)])
        assert result.exit_code == 0, result.output
        assert (workspace / "AGENTS.md").is_file()
        assert (workspace / ".cursor/rules/overview.mdc").is_file()
        assert "cursor" in result.stdout

    def test_generate_with_pack_option(self, project_dir: Path, scenario_pack: Path) -> None:
        """--pack works without a config file."""
        result = runner.invoke(app, ["generate", "-C", str(project_dir), "--pack", str(scenario_pack)])
        assert result.exit_code == 0, result.output
        assert (project_dir / "CLAUDE.md").is_file()

    def test_generate_selection(self, workspace: Path) -> None:
        """-t and -f limit what is written."""
        result = runner.invoke(app, ["generate", "-C", str(workspace), "-t", "cursor", "-f", "rules,mcp"])
        assert result.exit_code == 0, result.output
        assert (workspace / ".cursor/mcp.json").is_file()
        assert not (workspace / ".cursor/hooks.json").exists()
        assert not (workspace / "AGENTS.md").exists()

    def test_generate_model_profile(self, project_dir: Path, make_pack: MakePack) -> None:
        """--model-profile selects the profile written to opencode.json."""
        pack = make_pack(
            "models",
            models={"default": "anthropic/claude-sonnet-4", "profiles": {"budget": {"default": "anthropic/claude-haiku"}}},
        )
        result = runner.invoke(
            app,
            ["generate", "-C", str(project_dir), "-p", str(pack), "-t", "opencode", "--model-profile", "budget"],
        )
        assert result.exit_code == 0, result.output
        config = json.loads((project_dir / "opencode.json").read_text())
        assert config["model"] == "anthropic/claude-haiku"

    def test_generate_json(self, workspace: Path) -> None:
        """--json prints the structured report."""
        result = runner.invoke(app, ["generate", "-C", str(workspace), "-t", "agentsmd,copilot", "--json"])
        assert result.exit_code == 0, result.output

        data = json.loads(result.stdout)
        assert data["report_version"] == "1.0"
        assert data["success"] is True
        assert [t["target_id"] for t in data["targets"]] == ["copilot", "agentsmd"]
        assert data["targets"][1]["files_written"] == ["AGENTS.md"]
        assert data["packs"][0]["name"] == "base"

    def test_generate_jobs(self, workspace: Path) -> None:
        """--jobs runs targets concurrently with the same outcome."""
        result = runner.invoke(app, ["generate", "-C", str(workspace), "-j", "4", "--json"])
        assert result.exit_code == 0, result.output
        assert len(json.loads(result.stdout)["targets"]) == 7

    def test_generate_delete(self, workspace: Path) -> None:
        """--delete removes stale generated files."""
        runner.invoke(app, ["generate", "-C", str(workspace)])
        stale = workspace / ".cursor/rules/old.mdc"
        stale.write_text((workspace / ".cursor/rules/overview.mdc").read_text())

        result = runner.invoke(app, ["generate", "-C", str(workspace), "-t", "cursor", "--delete"])
        assert result.exit_code == 0, result.output
        assert not stale.exists()

    def test_missing_config(self, project_dir: Path) -> None:
        """No config file and no --pack exits 1."""
        result = runner.invoke(app, ["generate", "-C", str(project_dir)])
        assert result.exit_code == 1
        assert "agentpacks.yaml" in result.output

    def test_missing_pack(self, project_dir: Path, temp_dir: Path) -> None:
        """A missing pack exits 1 and writes nothing."""
        result = runner.invoke(app, ["generate", "-C", str(project_dir), "--pack", str(temp_dir / "nope")])
        assert result.exit_code == 1
        assert list(project_dir.iterdir()) == []

    def test_unknown_target_json(self, workspace: Path) -> None:
        """Errors are reported as JSON with --json."""
        result = runner.invoke(app, ["generate", "-C", str(workspace), "-t", "vim", "--json"])
        assert result.exit_code == 1

        data = json.loads(result.stdout)
        assert data["error"] is True
        assert data["error_type"] == "UnknownTargetError"
        assert data["context"]["target_id"] == "vim"

    def test_write_failure_exit_code(self, workspace: Path) -> None:
        """A failed file makes the exit code 1."""
        (workspace / "AGENTS.md").mkdir()
        result = runner.invoke(app, ["generate", "-C", str(workspace), "-t", "agentsmd", "--json"])
        assert result.exit_code == 1

        data = json.loads(result.stdout)
        assert data["success"] is False
        assert data["targets"][0]["errors"][0]["error_type"] == "TargetWriteError"


# =============================================================================
# validate / targets
# =============================================================================


class TestValidateCommand:
    """Tests for `agentpacks validate`."""

    def test_validate(self, workspace: Path) -> None:
        """validate loads and merges without writing."""
        result = runner.invoke(app, ["validate", "-C", str(workspace)])
        assert result.exit_code == 0, result.output
        assert "1 pack(s) valid" in result.stdout
        assert not (workspace / "AGENTS.md").exists()

    def test_validate_json_conflicts(self, project_dir: Path, make_pack: MakePack) -> None:
        """Overrides are listed in the JSON output."""
        a = make_pack("a", rules={"style": "A style.\n"})
        b = make_pack("b", rules={"style": "B style.\n"})
        result = runner.invoke(app, ["validate", "-C", str(project_dir), "-p", str(a), "-p", str(b), "--json"])
        assert result.exit_code == 0, result.output

        data = json.loads(result.stdout)
        assert data["valid"] is True
        assert [p["name"] for p in data["packs"]] == ["a", "b"]
        assert data["conflicts"] == [
            {"feature": "rules", "key": "style", "previous_pack": "a", "winning_pack": "b"}
        ]

    def test_validate_broken_pack(self, project_dir: Path, make_pack: MakePack) -> None:
        """A broken pack fails validation."""
        broken = make_pack("broken", hooks={"version": 2, "hooks": {}})
        result = runner.invoke(app, ["validate", "-C", str(project_dir), "-p", str(broken), "--json"])
        assert result.exit_code == 1
        assert json.loads(result.stdout)["error_type"] == "HooksConfigError"


class TestTargetsCommand:
    """Tests for `agentpacks targets`."""

    def test_lists_every_target(self) -> None:
        """Every target id is listed."""
        result = runner.invoke(app, ["targets"])
        assert result.exit_code == 0
        for target_id in ("opencode", "cursor", "claudecode", "codexcli", "geminicli", "copilot", "agentsmd"):
            assert target_id in result.stdout


# =============================================================================
# pack validate
# =============================================================================


class TestPackValidateCommand:
    """Tests for `agentpacks pack validate`."""

    def test_valid_pack(self, scenario_pack: Path) -> None:
        """A well-formed pack passes."""
        result = runner.invoke(app, ["pack", "validate", str(scenario_pack)])
        assert result.exit_code == 0, result.output
        assert "base 1.0.0 is valid" in result.stdout

    def test_invalid_pack_json(self, make_pack: MakePack) -> None:
        """Every broken file is reported."""
        pack = make_pack(
            "broken",
            agents={"nameless": "---\ndescription: no name\n---\nBody\n"},
            mcp={"mcpServers": {"bad": {}}},
        )
        result = runner.invoke(app, ["pack", "validate", str(pack), "--json"])
        assert result.exit_code == 1

        data = json.loads(result.stdout)
        assert data["valid"] is False
        assert len(data["errors"]) == 2

    def test_missing_manifest(self, temp_dir: Path) -> None:
        """A directory without pack.json is invalid."""
        result = runner.invoke(app, ["pack", "validate", str(temp_dir), "--json"])
        assert result.exit_code == 1
        assert "pack.json" in json.loads(result.stdout)["errors"][0]

    def test_missing_directory(self, temp_dir: Path) -> None:
        """A missing path exits 1."""
        result = runner.invoke(app, ["pack", "validate", str(temp_dir / "nope")])
        assert result.exit_code == 1


class TestVersion:
    """Tests for --version."""

    def test_version(self) -> None:
        """--version prints the package version."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout
