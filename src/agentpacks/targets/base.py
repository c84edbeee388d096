"""
Target generator contract.

Every backend is a peer implementation of one narrow contract:

    id                  stable target id, matched against `targets` selectors
    supports_feature()  which feature categories the tool understands
    generate()          write the tool's files, return what was written

Design Decisions:
    - generate() is a template method: resolve the output root, compute the
      effective feature set, let the backend render, then prune stale files
    - Output roots come from an injected RootResolver; global vs. project is
      decided in one place (resolve_root_resolver), never inside a backend
    - Features a backend does not support are skipped with a DEBUG log and an
      UnsupportedFeatureSkip record, never an error
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, Protocol, TypeVar

from agentpacks.config import user_root
from agentpacks.errors import TargetWriteError, UnsupportedFeatureSkip
from agentpacks.models import ResolvedModels, resolve_agent_model, resolve_models
from agentpacks.schema import FEATURE_IDS, Agent, FeatureId, MergedFeatures, Skill, TargetId, TargetSelector
from agentpacks.targets.filesystem import OutputWriter
from agentpacks.targets.render import markdown_document

logger = logging.getLogger(__name__)


# =============================================================================
# Output Roots
# =============================================================================


class RootResolver(Protocol):
    """Resolves the directory a backend writes under."""

    def root(self) -> Path: ...


@dataclass(frozen=True)
class ProjectRootResolver:
    """Write under <project_root>/<base_dir>."""

    project_root: Path
    base_dir: str = "."

    def root(self) -> Path:
        return (Path(self.project_root) / self.base_dir).resolve()


@dataclass(frozen=True)
class UserRootResolver:
    """Write under the user-level root (home directory or AGENTPACKS_HOME)."""

    home: Path

    def root(self) -> Path:
        return Path(self.home).resolve()


# =============================================================================
# Options & Results
# =============================================================================


@dataclass
class GenerateOptions:
    """
    Input to every backend's generate().

    Attributes:
        project_root: Project directory
        features: Merged features (never mutated by backends)
        base_dir: Output base directory relative to project_root
        enabled_features: Feature categories requested by the caller
        delete_existing: Remove stale generated files after writing
        global_: Write to the user-level root instead of the project
        verbose: Caller asked for verbose output
        root_resolver: Explicit resolver; overrides base_dir/global_
        model_profile: Model profile applied when resolving models.json
    """

    project_root: Path
    features: MergedFeatures
    base_dir: str = "."
    enabled_features: Sequence[FeatureId] = FEATURE_IDS
    delete_existing: bool = False
    global_: bool = False
    verbose: bool = False
    root_resolver: RootResolver | None = None
    model_profile: str | None = None


def resolve_root_resolver(options: GenerateOptions) -> RootResolver:
    """Pick the resolver for a run; the single place global mode is decided."""
    if options.root_resolver is not None:
        return options.root_resolver
    if options.global_:
        return UserRootResolver(user_root())
    return ProjectRootResolver(Path(options.project_root), options.base_dir)


@dataclass
class GenerateResult:
    """
    Outcome of one backend run.

    Attributes:
        target_id: Backend that produced this result
        root: Directory the backend wrote under
        files_written: Every file produced by this run, in write order
        files_deleted: Stale generated files (or skill dirs) removed
        skipped: Feature categories with content the backend cannot express
        errors: Per-file write failures
    """

    target_id: str
    root: Path | None = None
    files_written: list[Path] = field(default_factory=list)
    files_deleted: list[Path] = field(default_factory=list)
    skipped: list[UnsupportedFeatureSkip] = field(default_factory=list)
    errors: list[TargetWriteError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Whether every file was written."""
        return not self.errors


# =============================================================================
# Base Target
# =============================================================================


class _Selectable(Protocol):
    @property
    def targets(self) -> TargetSelector: ...


S = TypeVar("S", bound=_Selectable)


class BaseTarget(ABC):
    """
    Base class for backends.

    Subclasses set `id`, `name` and `supported_features` and implement
    render(); generate() handles everything common to all backends.
    """

    id: ClassVar[TargetId]
    name: ClassVar[str]
    supported_features: ClassVar[frozenset[FeatureId]]

    model_profile: str | None = None

    def supports_feature(self, feature: FeatureId | str) -> bool:
        """Whether this tool natively understands the feature category."""
        try:
            return FeatureId(feature) in self.supported_features
        except ValueError:
            return False

    def eligible(self, items: Iterable[S]) -> list[S]:
        """Entries whose selector is the wildcard or names this target."""
        return [item for item in items if item.targets.matches(self.id.value)]

    def effective_features(self, options: GenerateOptions, result: GenerateResult) -> frozenset[FeatureId]:
        """
        Enabled features this backend supports.

        Each enabled feature that is unsupported yet has merged content is
        recorded as an UnsupportedFeatureSkip.
        """
        effective = set()
        for feature in options.enabled_features:
            feature = FeatureId(feature)
            if self.supports_feature(feature):
                effective.add(feature)
                continue
            count = options.features.count(feature)
            if count:
                skip = UnsupportedFeatureSkip(
                    target_id=self.id.value,
                    feature=feature.value,
                    item_count=count,
                )
                result.skipped.append(skip)
                logger.debug("%s", skip.describe())
        return frozenset(effective)

    def generate(self, options: GenerateOptions) -> GenerateResult:
        """
        Write this backend's files and return every path written.

        Idempotent: unchanged inputs give byte-identical files.
        """
        root = resolve_root_resolver(options).root()
        result = GenerateResult(target_id=self.id.value, root=root)
        writer = OutputWriter(self.id.value, root, result)
        features = self.effective_features(options, result)
        self.model_profile = options.model_profile

        self.render(options.features, features, writer)

        if options.delete_existing:
            writer.prune()

        logger.debug(
            "[%s] wrote %d file(s), deleted %d, %d error(s)",
            self.id.value,
            len(result.files_written),
            len(result.files_deleted),
            len(result.errors),
        )
        return result

    @abstractmethod
    def render(
        self,
        features: MergedFeatures,
        enabled: frozenset[FeatureId],
        writer: OutputWriter,
    ) -> None:
        """Render the enabled features through the writer."""

    # =========================================================================
    # Helpers for subclasses
    # =========================================================================

    def target_options(self, item: Any) -> dict[str, Any]:
        """The item's frontmatter block for this target (e.g. `cursor:`), if any."""
        return dict(item.target_options.get(self.id.value, {}))

    def write_skill(
        self,
        writer: OutputWriter,
        skills_dir: str,
        skill: Skill,
        frontmatter: dict[str, Any],
    ) -> None:
        """
        Write <skills_dir>/<name>/SKILL.md and every asset next to it.

        The asset paths are recorded in the skill directory so that a later
        prune removes only files agentpacks wrote.
        """
        base = f"{skills_dir}/{skill.name}"
        writer.write_text(f"{base}/SKILL.md", markdown_document(skill.body, frontmatter))
        for asset in skill.assets:
            writer.write_bytes(f"{base}/{asset.path}", asset.data)
        writer.write_asset_list(base, [asset.path for asset in skill.assets])

    def resolved_models(self, features: MergedFeatures) -> ResolvedModels:
        """models.json resolved for this target under the active profile."""
        return resolve_models(features.models, self.model_profile, self.id.value)

    def agent_model_options(
        self,
        features: MergedFeatures,
        enabled: frozenset[FeatureId],
        agent: Agent,
        with_sampling: bool = False,
    ) -> dict[str, Any]:
        """
        Frontmatter keys choosing the agent's model.

        A models.json assignment wins over the `model` in the agent's own
        target block; {} when the models feature is off or nothing is set.
        temperature and top_p are included only for tools that accept them.
        """
        if FeatureId.MODELS not in enabled:
            return {}
        fallback = self.target_options(agent).get("model")
        assigned = resolve_agent_model(self.resolved_models(features), agent.name, fallback)
        if assigned is None:
            return {}
        if not with_sampling:
            return {"model": assigned.model}
        return assigned.model_dump(exclude_none=True)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.id.value!r})"
