"""Mirroring orchestrator.

``MirrorEngine`` ties collector, plan builder, committer and reconciler
into one run.  It:

1. Collects the standard ancestry of the root commit.
2. Resolves which standard commits the mirror already contains.
3. Builds the replay plan.
4. Stops here on a dry run.
5. Applies every unit in order.
6. Reconciles mirror branches and pushes.
7. Builds and returns a ``MirrorReport``.

Any error aborts the run.  The mirror is left as the last successful unit
left it, and a later run resumes from the markers already committed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from history_mirror.backend.base import RepositoryBackend
from history_mirror.errors import CommitNotFoundError
from history_mirror.replay.collector import collect_ancestry, resolve_mirrored_set
from history_mirror.replay.committer import MirrorCommitter
from history_mirror.replay.filter import AllowList, PathFilter
from history_mirror.replay.models import MirrorReport
from history_mirror.replay.planner import ReplayPlan, build_plan
from history_mirror.replay.reconciler import BranchReconciler
from history_mirror.replay.resolver import create_resolver

if TYPE_CHECKING:
    from history_mirror.config import MirrorSettings

logger = logging.getLogger(__name__)


class MirrorEngine:
    """Mirror a filtered slice of one repository's history into another.

    Args:
        standard: The full-history source repository.
        mirror: The repository receiving the filtered history.
        settings: Allow-list, depth limits, conflict strategy and push flag.

    Raises:
        ValueError: If both backends share one working tree.
    """

    def __init__(
        self,
        standard: RepositoryBackend,
        mirror: RepositoryBackend,
        settings: MirrorSettings,
    ) -> None:
        if Path(standard.root).resolve() == Path(mirror.root).resolve():
            raise ValueError(
                f"Standard and mirror repositories are the same working tree: "
                f"{standard.root}"
            )
        self.standard_repo = standard
        self.mirror_repo = mirror
        self.settings = settings

        self.allow_list = AllowList.build(
            folders=settings.folders,
            files=settings.files,
            component=settings.component,
        )
        self.path_filter = PathFilter(self.allow_list)
        self.resolver = create_resolver(settings.conflict_strategy)
        self.committer = MirrorCommitter(
            standard, mirror, self.path_filter, self.resolver
        )
        self.reconciler = BranchReconciler(standard, mirror, push=settings.push)

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def mirror(self, root_commit_hash: str, dry_run: bool = False) -> MirrorReport:
        """Replay the history of *root_commit_hash* into the mirror.

        Args:
            root_commit_hash: Standard commit to mirror (any revision git
                can resolve; stored as the full hash).
            dry_run: If ``True``, build the plan but do not touch the
                mirror.

        Returns:
            A ``MirrorReport`` describing what was (or would be) done.

        Raises:
            MirrorError: On any failure; the run stops at the failing unit.
        """
        started_at = datetime.now(timezone.utc).isoformat()

        root_hash = self.resolve_root(root_commit_hash)
        plan = self.plan(root_hash)
        resume = plan.resume_point

        if dry_run:
            logger.info("Dry run: %d unit(s) planned, mirror untouched", len(plan))
            return MirrorReport(
                root_hash=root_hash,
                dry_run=True,
                resume_hash=resume.standard_hash if resume else None,
                units=list(plan.units),
                started_at=started_at,
                completed_at=datetime.now(timezone.utc).isoformat(),
            )

        self.committer.apply_plan(plan)
        branches, deleted = self.reconciler.reconcile(plan)
        pushed = self.reconciler.push_branches()

        report = MirrorReport(
            root_hash=root_hash,
            resume_hash=resume.standard_hash if resume else None,
            units=list(plan.units),
            branches=branches,
            deleted_branches=deleted,
            pushed=pushed,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc).isoformat(),
        )
        logger.info("%s", report.summary())
        return report

    def resolve_root(self, root_commit_hash: str) -> str:
        """Full standard hash of *root_commit_hash*."""
        root = self.standard_repo.resolve_commit(root_commit_hash)
        if root is None:
            raise CommitNotFoundError(
                root_commit_hash, str(self.standard_repo.root)
            )
        return root.hash

    def plan(self, root_hash: str) -> ReplayPlan:
        """Collect both histories and build the replay plan."""
        ancestry = collect_ancestry(
            self.standard_repo, root_hash, self.settings.standard_depth_limit
        )
        mirrored = resolve_mirrored_set(
            self.mirror_repo, self.settings.mirror_depth_limit
        )
        return build_plan(
            ancestry,
            mirrored,
            root_hash,
            branch_tips=self.standard_repo.list_branches(),
            depth_limit=self.settings.standard_depth_limit,
        )
