"""
Pytest configuration and fixtures for agentpacks tests.

This module provides shared fixtures used across unit and integration tests:
a temporary directory, a factory that lays out pack directories on disk, and
the single-pack scenario used by the end-to-end tests.
"""

import json
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any, Generator

import pytest

from agentpacks.merge import merge_packs
from agentpacks.pack import PackLoader
from agentpacks.schema import MergedFeatures

MakePack = Callable[..., Path]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def project_dir(temp_dir: Path) -> Path:
    """An empty project directory to generate into."""
    path = temp_dir / "project"
    path.mkdir()
    return path


@pytest.fixture
def make_pack(temp_dir: Path) -> MakePack:
    """
    Return a factory that writes a pack directory and returns its path.

    Markdown features are given as {stem: file text}; skills as
    {dir name: {relative path: text}}; plugins as {file name: text}; hooks,
    mcp and models as JSON-able dicts.
    """

    def _make(
        name: str,
        *,
        version: str = "1.0.0",
        rules: dict[str, str] | None = None,
        commands: dict[str, str] | None = None,
        agents: dict[str, str] | None = None,
        skills: dict[str, dict[str, str]] | None = None,
        plugins: dict[str, str] | None = None,
        hooks: dict[str, Any] | None = None,
        mcp: dict[str, Any] | None = None,
        models: dict[str, Any] | None = None,
        ignore: str | None = None,
        parent: Path | None = None,
    ) -> Path:
        pack_dir = (parent or temp_dir / "packs") / name
        pack_dir.mkdir(parents=True)
        (pack_dir / "pack.json").write_text(json.dumps({"name": name, "version": version}))

        for subdir, files in (("rules", rules), ("commands", commands), ("agents", agents)):
            if not files:
                continue
            (pack_dir / subdir).mkdir()
            for stem, text in files.items():
                (pack_dir / subdir / f"{stem}.md").write_text(text)

        for skill_name, files in (skills or {}).items():
            for rel, text in files.items():
                path = pack_dir / "skills" / skill_name / rel
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(text)

        for file_name, text in (plugins or {}).items():
            (pack_dir / "plugins").mkdir(exist_ok=True)
            (pack_dir / "plugins" / file_name).write_text(text)

        if hooks is not None:
            (pack_dir / "hooks").mkdir()
            (pack_dir / "hooks" / "hooks.json").write_text(json.dumps(hooks))
        if mcp is not None:
            (pack_dir / "mcp.json").write_text(json.dumps(mcp))
        if models is not None:
            (pack_dir / "models.json").write_text(json.dumps(models))
        if ignore is not None:
            (pack_dir / "ignore").write_text(ignore)
        return pack_dir

    return _make


@pytest.fixture
def scenario_pack(make_pack: MakePack) -> Path:
    """One pack exercising every feature category."""
    return make_pack(
        "base",
        rules={
            "overview": "---\nroot: true\ndescription: Project overview\n---\nThis overview describes the project.\n",
            "security": "---\nroot: false\ntargets: ['*']\nglobs: src/**/*.py\n---\nNever commit secrets.\n",
        },
        commands={"lint": "---\ndescription: Run the linters\n---\nRun `make lint` and fix every finding.\n"},
        agents={"reviewer": "---\nname: reviewer\ndescription: Reviews diffs\n---\nYou review code changes.\n"},
        skills={
            "migrate": {
                "SKILL.md": "---\ndescription: Database migrations\n---\nWrite reversible migrations.\n",
                "templates/migration.sql": "-- up\n",
            }
        },
        hooks={"version": 1, "hooks": {"afterFileEdit": [{"command": "npm run format"}]}},
        mcp={"mcpServers": {"test": {"command": "npx", "args": ["-y", "test-server"]}}},
        ignore="# build output\nnode_modules/\n\ndist/\n",
    )


@pytest.fixture
def scenario_features(scenario_pack: Path) -> MergedFeatures:
    """Merged features of the scenario pack."""
    return merge_packs([PackLoader(scenario_pack).load()]).features
