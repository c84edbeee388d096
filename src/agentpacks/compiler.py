"""
Compiler for agentpacks.

The Compiler is the orchestration layer that turns a workspace configuration
into per-tool files. It coordinates between:
- Pack Loader: Reads every configured pack directory
- Feature Merger: Folds packs into one MergedFeatures
- Target backends: Write each tool's layout

Compile Flow:
    1. Load every pack in declaration order (any load error aborts)
    2. Merge packs into MergedFeatures, recording overrides
    3. For each selected target, run its backend
    4. Collect per-backend results and return a summary

Design Principles:
    - Fail-fast loading: nothing is written if any pack is broken
    - Isolated backends: one backend's write failures never stop another
    - Deterministic: results are reported in registry order, even when
      backends run concurrently
"""

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from agentpacks.config import WorkspaceConfig, parse_feature_ids, parse_target_ids
from agentpacks.errors import TargetWriteError
from agentpacks.merge import MergeResult, merge_packs
from agentpacks.pack import load_all
from agentpacks.schema import TARGET_IDS, Pack, TargetId
from agentpacks.targets import GenerateOptions, GenerateResult, get_target

logger = logging.getLogger(__name__)


@dataclass
class CompileResult:
    """
    Result of a complete compile.

    Attributes:
        packs: Loaded packs, in precedence order
        merge: Merged features and override conflicts
        results: One GenerateResult per selected target, in registry order
    """

    packs: list[Pack]
    merge: MergeResult
    results: list[GenerateResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Whether every backend wrote every file."""
        return all(r.success for r in self.results)

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1

    @property
    def files_written(self) -> list[Path]:
        return [p for r in self.results for p in r.files_written]


class Compiler:
    """
    Loads, merges and generates for one workspace.

    Usage:
        compiler = Compiler(project_root, config)
        result = compiler.compile()
        print(f"{len(result.files_written)} file(s) written")

    Attributes:
        project_root: Directory the workspace configuration belongs to
        config: Workspace configuration (pack list and defaults)
    """

    def __init__(self, project_root: Path | str, config: WorkspaceConfig) -> None:
        self.project_root = Path(project_root).resolve()
        self.config = config

    def load(self) -> list[Pack]:
        """
        Load every configured pack.

        Raises:
            PackError: For a missing or invalid pack (subclass-specific)
        """
        return load_all(self.config.packs, self.project_root)

    def merge(self, packs: Sequence[Pack] | None = None) -> tuple[list[Pack], MergeResult]:
        """Load (unless packs are given) and merge."""
        loaded = list(packs) if packs is not None else self.load()
        return loaded, merge_packs(loaded)

    def compile(
        self,
        targets: Sequence[str] | None = None,
        features: Sequence[str] | None = None,
        base_dir: str | None = None,
        delete: bool | None = None,
        global_: bool | None = None,
        jobs: int = 1,
        verbose: bool = False,
        model_profile: str | None = None,
    ) -> CompileResult:
        """
        Load, merge and generate.

        Arguments left as None fall back to the workspace configuration.

        Args:
            targets: Target ids ("*" or comma-separated values allowed)
            features: Feature ids ("*" or comma-separated values allowed)
            base_dir: Output base directory relative to the project root
            delete: Remove stale generated files
            global_: Write to the user-level root
            jobs: Number of backends to run concurrently
            verbose: Forwarded to backends
            model_profile: models.json profile to apply

        Raises:
            UnknownTargetError / UnknownFeatureError: For invalid ids
            PackError: For load failures (nothing is written)
        """
        target_ids = parse_target_ids(targets) if targets else self.config.target_ids()
        target_ids = sorted(target_ids, key=TARGET_IDS.index)
        feature_ids = parse_feature_ids(features) if features else self.config.feature_ids()

        packs, merge_result = self.merge()
        options = GenerateOptions(
            project_root=self.project_root,
            features=merge_result.features,
            base_dir=base_dir if base_dir is not None else self.config.base_dir,
            enabled_features=tuple(feature_ids),
            delete_existing=delete if delete is not None else self.config.delete,
            global_=global_ if global_ is not None else self.config.global_,
            verbose=verbose,
            model_profile=model_profile if model_profile is not None else self.config.model_profile,
        )

        results = self.generate(target_ids, options, jobs=jobs)
        return CompileResult(packs=packs, merge=merge_result, results=results)

    def generate(
        self,
        target_ids: Sequence[TargetId],
        options: GenerateOptions,
        jobs: int = 1,
    ) -> list[GenerateResult]:
        """Run each backend; results come back in the order of target_ids."""
        if jobs > 1 and len(target_ids) > 1:
            with ThreadPoolExecutor(max_workers=min(jobs, len(target_ids))) as pool:
                return list(pool.map(lambda t: _run_target(t, options), target_ids))
        return [_run_target(t, options) for t in target_ids]


def _run_target(target_id: TargetId, options: GenerateOptions) -> GenerateResult:
    target = get_target(target_id)
    logger.debug("Generating %s", target.name)
    try:
        return target.generate(options)
    except OSError as e:
        # Output root itself unusable (e.g. base_dir is a file)
        error = TargetWriteError(
            target_id=target_id.value,
            path=str(getattr(e, "filename", "") or ""),
            underlying_error=str(e),
        )
        logger.warning("%s", error.message)
        return GenerateResult(target_id=target_id.value, errors=[error])

