"""
Output writer shared by every backend.

Responsibilities:
    - Whole-file atomic writes (temp file in the same directory + os.replace)
    - Per-file failure collection as TargetWriteError; a failed file never
      stops the remaining files
    - Containment: no path may resolve outside the output root
    - Ownership bookkeeping: backends declare which directories, files, JSON
      keys and text blocks they manage, and stale-output pruning only ever
      touches those declared locations
    - Key-level updates of JSON files shared with the user (settings.json)
    - Marker-delimited blocks in shared text files (config.toml)
"""

from __future__ import annotations

import contextlib
import errno
import itertools
import json
import logging
import os
import shutil
import tempfile
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from agentpacks.errors import TargetWriteError

if TYPE_CHECKING:
    from agentpacks.targets.base import GenerateResult

logger = logging.getLogger(__name__)

GENERATED_MARKER = "Generated by agentpacks"
MARKDOWN_MARKER = f"<!-- {GENERATED_MARKER}. Do not edit: changes are overwritten. -->"
HASH_MARKER = f"# {GENERATED_MARKER}. Do not edit: changes are overwritten."
SLASH_MARKER = f"// {GENERATED_MARKER}. Do not edit: changes are overwritten."
BLOCK_BEGIN = "# >>> agentpacks >>>"
BLOCK_END = "# <<< agentpacks <<<"

# Lists the asset files agentpacks wrote into a generated skill directory
ASSET_LIST_FILE = ".agentpacks-assets"
SKILL_FILE = "SKILL.md"

_COMMENT_PREFIXES = ("<!--", "#", "//")


def has_generated_marker(path: Path) -> bool:
    """
    Whether a file carries the generated marker in its marker position.

    The marker must be the first non-blank line, or the first non-blank line
    after a leading `---` frontmatter block, and that line must be a comment.
    """
    try:
        with path.open(encoding="utf-8", errors="replace") as f:
            lines = iter(f)
            first = next(lines, "")
            if first.strip() == "---":
                for line in lines:
                    if line.strip() == "---":
                        break
                else:
                    return False
            else:
                lines = itertools.chain([first], lines)
            for line in lines:
                stripped = line.strip()
                if stripped:
                    return stripped.startswith(_COMMENT_PREFIXES) and GENERATED_MARKER in stripped
    except OSError:
        return False
    return False


def read_asset_list(skill_dir: Path) -> list[str]:
    """Asset paths recorded for a generated skill; [] when none are recorded."""
    path = skill_dir / ASSET_LIST_FILE
    if not has_generated_marker(path):
        return []
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError):
        return []
    return [line.strip() for line in lines[1:] if line.strip() and not line.startswith("#")]


def write_atomic(path: Path, data: bytes) -> None:
    """Write data to path atomically via a temp file + os.replace()."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, suffix=".tmp", prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise


def _read_json_object(path: Path) -> dict[str, Any] | None:
    try:
        parsed = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        return None
    return parsed if isinstance(parsed, dict) else None


def _splice_block(existing: str, block: str | None) -> str:
    """Replace the delimited block in existing text; None removes it."""
    new_block = f"{BLOCK_BEGIN}\n{block.rstrip()}\n{BLOCK_END}\n" if block is not None else ""
    start = existing.find(BLOCK_BEGIN)
    end = existing.find(BLOCK_END, start) if start != -1 else -1
    if start != -1 and end != -1:
        head = existing[:start]
        tail = existing[end + len(BLOCK_END):].lstrip("\n")
        if block is not None:
            return head + new_block + (("\n" + tail) if tail else "")
        head = head.rstrip("\n")
        if head and tail:
            return head + "\n\n" + tail
        return head + "\n" if head else tail
    if block is None:
        return existing
    if existing.strip():
        return existing.rstrip("\n") + "\n\n" + new_block
    return new_block


@dataclass(frozen=True)
class _ManagedDir:
    path: Path
    suffix: str
    prefix: str = ""
    skip: frozenset[str] = frozenset()

    def covers(self, path: Path) -> bool:
        return (
            path.suffix == self.suffix
            and path.name.startswith(self.prefix)
            and path.name not in self.skip
        )


class OutputWriter:
    """
    Writes one backend's files under a single output root.

    Every path passed in is relative to the root. Written paths are appended
    to the backend's GenerateResult; failures become TargetWriteError records.
    """

    def __init__(self, target_id: str, root: Path, result: GenerateResult) -> None:
        self.target_id = target_id
        self.root = root
        self.result = result
        self._written: set[Path] = set()
        self._written_keys: dict[Path, set[str]] = {}
        self._managed_files: list[Path] = []
        self._managed_dirs: list[_ManagedDir] = []
        self._managed_skills: dict[Path, dict[Path, list[str]]] = {}
        self._managed_json_files: dict[Path, frozenset[str]] = {}
        self._managed_json_keys: dict[Path, set[str]] = {}
        self._json_companions: dict[Path, set[str]] = {}
        self._managed_blocks: list[Path] = []

    def path(self, rel_path: str) -> Path:
        return self.root / rel_path

    def _contained(self, path: Path) -> Path:
        """Return path, or raise if it resolves outside the output root."""
        if not path.resolve().is_relative_to(self.root.resolve()):
            raise PermissionError(errno.EACCES, "path escapes the output root", str(path))
        return path

    # =========================================================================
    # Writes
    # =========================================================================

    def write_bytes(self, rel_path: str, data: bytes) -> Path | None:
        """Write a whole file; unchanged content is left untouched on disk."""
        path = self.path(rel_path)
        try:
            self._contained(path)
            if not (path.is_file() and path.read_bytes() == data):
                write_atomic(path, data)
        except OSError as e:
            self._fail(path, e)
            return None
        if path not in self._written:
            self._written.add(path)
            self.result.files_written.append(path)
        return path

    def write_text(self, rel_path: str, content: str) -> Path | None:
        if not content.endswith("\n"):
            content += "\n"
        return self.write_bytes(rel_path, content.encode("utf-8"))

    def write_json(self, rel_path: str, data: Any) -> Path | None:
        return self.write_text(rel_path, json.dumps(data, indent=2, ensure_ascii=False))

    def update_json_keys(self, rel_path: str, updates: dict[str, Any]) -> Path | None:
        """
        Set top-level keys in a JSON file the user may also edit.

        Other keys keep their values and order. A file that is not a JSON
        object is backed up to <name>.bak and replaced.
        """
        path = self.path(rel_path)
        data: dict[str, Any] = {}
        try:
            if self._contained(path).is_file():
                parsed = _read_json_object(path)
                if parsed is not None:
                    data = parsed
                else:
                    backup = path.with_suffix(path.suffix + ".bak")
                    shutil.copy2(path, backup)
                    logger.warning("Unreadable %s; backed up to %s", path, backup)
        except OSError as e:
            self._fail(path, e)
            return None
        data.update(updates)
        written = self.write_json(rel_path, data)
        if written is not None:
            self._written_keys.setdefault(path, set()).update(updates)
        return written

    def upsert_block(self, rel_path: str, block: str) -> Path | None:
        """
        Replace (or append) the agentpacks-delimited block in a shared text file.

        Content outside the BLOCK_BEGIN/BLOCK_END markers is preserved.
        """
        path = self.path(rel_path)
        existing = ""
        try:
            if self._contained(path).is_file():
                existing = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            self._fail(path, e)
            return None
        return self.write_text(rel_path, _splice_block(existing, block))

    # =========================================================================
    # Ownership
    # =========================================================================

    def manage_file(self, rel_path: str) -> None:
        """Declare a single generated file (e.g. CLAUDE.md)."""
        self._managed_files.append(self.path(rel_path))

    def manage_dir(
        self,
        rel_path: str,
        suffix: str,
        prefix: str = "",
        skip: Iterable[str] = (),
    ) -> None:
        """Declare a directory of generated files with the given suffix (and name prefix)."""
        self._managed_dirs.append(_ManagedDir(self.path(rel_path), suffix, prefix, frozenset(skip)))

    def manage_skills(self, rel_path: str) -> None:
        """
        Declare a directory whose subdirectories are generated skills.

        Must be called before the skills are written: the asset list each
        skill directory holds from the previous run is read here.
        """
        skills_dir = self.path(rel_path)
        previous: dict[Path, list[str]] = {}
        if skills_dir.is_dir():
            for skill_dir in sorted(p for p in skills_dir.iterdir() if p.is_dir()):
                previous[skill_dir] = read_asset_list(skill_dir)
        self._managed_skills[skills_dir] = previous

    def manage_json_file(self, rel_path: str, keys: Iterable[str]) -> None:
        """
        Declare a JSON file agentpacks writes whole (e.g. .cursor/mcp.json).

        When it is not written, it is removed if it holds only these keys.
        """
        self._managed_json_files[self.path(rel_path)] = frozenset(keys)

    def manage_json_keys(self, rel_path: str, keys: Iterable[str], companions: Iterable[str] = ()) -> None:
        """
        Declare top-level keys agentpacks owns in a JSON file shared with the user.

        Companion keys (e.g. `$schema`) are removed only together with an
        owned key, and only when no owned key was written this run.
        """
        path = self.path(rel_path)
        self._managed_json_keys.setdefault(path, set()).update(keys)
        self._json_companions.setdefault(path, set()).update(companions)

    def manage_block(self, rel_path: str) -> None:
        """Declare a shared text file holding an agentpacks-delimited block."""
        self._managed_blocks.append(self.path(rel_path))

    def write_asset_list(self, rel_dir: str, asset_paths: Iterable[str]) -> Path | None:
        """Record the assets written into a generated skill directory."""
        paths = list(asset_paths)
        if not paths:
            return None
        return self.write_text(f"{rel_dir}/{ASSET_LIST_FILE}", "\n".join([HASH_MARKER, *paths]))

    # =========================================================================
    # Pruning
    # =========================================================================

    def prune(self) -> None:
        """
        Remove generated output that this run did not produce.

        Only declared locations are touched. Whole files are removed only when
        they bear the generated marker; inside a generated skill directory only
        the files agentpacks recorded are removed. JSON keys and delimited
        blocks that were not written are dropped from shared files.
        """
        for path in self._managed_files:
            if path not in self._written and path.is_file() and has_generated_marker(path):
                self._delete(path)

        for managed in self._managed_dirs:
            if not managed.path.is_dir():
                continue
            for path in sorted(managed.path.iterdir()):
                if (
                    path.is_file()
                    and managed.covers(path)
                    and path not in self._written
                    and has_generated_marker(path)
                ):
                    self._delete(path)

        for previous in self._managed_skills.values():
            for skill_dir, asset_paths in previous.items():
                self._prune_skill(skill_dir, asset_paths)

        for path, keys in self._managed_json_files.items():
            if path in self._written or not path.is_file():
                continue
            data = _read_json_object(path)
            if data is not None and set(data) <= keys:
                self._delete(path)

        for path, keys in self._managed_json_keys.items():
            written = self._written_keys.get(path, set())
            self._prune_json_keys(path, keys - written, self._json_companions.get(path, set()) - written)

        for path in self._managed_blocks:
            if path not in self._written:
                self._prune_block(path)

    def _prune_skill(self, skill_dir: Path, asset_paths: list[str]) -> None:
        skill_file = skill_dir / SKILL_FILE
        if skill_file not in self._written and not has_generated_marker(skill_file):
            return

        removed: list[Path] = []
        for rel in asset_paths:
            path = skill_dir / rel
            if path in self._written or not path.is_file():
                continue
            if not path.resolve().is_relative_to(skill_dir.resolve()):
                logger.warning("[%s] ignoring %s listed outside %s", self.target_id, rel, skill_dir)
                continue
            if self._delete(path):
                removed.append(path)
        for path in (skill_file, skill_dir / ASSET_LIST_FILE):
            if path not in self._written and has_generated_marker(path) and self._delete(path):
                removed.append(path)

        # Directories emptied above, deepest first; a user file keeps its directory.
        parents = {p for path in removed for p in path.parents if p.is_relative_to(skill_dir)}
        for directory in sorted(parents, key=lambda p: len(p.parts), reverse=True):
            if directory.is_dir() and not any(directory.iterdir()):
                try:
                    directory.rmdir()
                except OSError as e:
                    self._fail(directory, e)

    def _prune_json_keys(self, path: Path, stale: set[str], companions: set[str]) -> None:
        if not stale or not path.is_file():
            return
        data = _read_json_object(path)
        if data is None:
            return
        removed = stale & data.keys()
        if not removed:
            return
        if path not in self._written_keys:
            removed |= companions & data.keys()
        for key in removed:
            del data[key]
        if not data:
            self._delete(path)
            return
        rel_path = path.relative_to(self.root).as_posix()
        self.write_json(rel_path, data)
        logger.debug("[%s] removed %s from %s", self.target_id, sorted(removed), path)

    def _prune_block(self, path: Path) -> None:
        if not path.is_file():
            return
        try:
            existing = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            self._fail(path, e)
            return
        if BLOCK_BEGIN not in existing:
            return
        remaining = _splice_block(existing, None)
        if not remaining.strip():
            self._delete(path)
            return
        self.write_text(path.relative_to(self.root).as_posix(), remaining)
        logger.debug("[%s] removed agentpacks block from %s", self.target_id, path)

    def _delete(self, path: Path) -> bool:
        try:
            path.unlink()
        except OSError as e:
            self._fail(path, e)
            return False
        logger.debug("[%s] removed stale %s", self.target_id, path)
        self.result.files_deleted.append(path)
        return True

    def _fail(self, path: Path, error: OSError | UnicodeDecodeError) -> None:
        err = TargetWriteError(
            target_id=self.target_id,
            path=str(path),
            underlying_error=str(error),
        )
        logger.warning("%s", err.message)
        self.result.errors.append(err)
