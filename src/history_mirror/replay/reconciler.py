"""Post-replay branch reconciliation.

After all units are applied, the mirror's branches are made to match the
standard repository around the newest mirror commit:

1. Every standard branch containing the last committed standard commit is
   created or moved to its mirror counterpart; the first one (by name) is
   checked out.  When the run committed nothing, the resume point is used
   instead and existing branches are only created, never moved.
2. Lineage branches the replay used that are not in that set are deleted.
3. All branches are pushed, unless pushing is disabled.
"""

from __future__ import annotations

import logging

from history_mirror.backend.base import RepositoryBackend
from history_mirror.replay.planner import ReplayPlan

logger = logging.getLogger(__name__)


class BranchReconciler:
    """Align mirror branches with the standard repository.

    Args:
        standard: Repository the branch layout is read from.
        mirror: Repository whose branches are updated.
        push: Push all mirror branches after reconciling.
    """

    def __init__(
        self,
        standard: RepositoryBackend,
        mirror: RepositoryBackend,
        push: bool = True,
    ) -> None:
        self.standard = standard
        self.mirror = mirror
        self.push = push

    def reconcile(self, plan: ReplayPlan) -> tuple[list[str], list[str]]:
        """Point branches at the newest mirror commit and prune the rest.

        Returns:
            ``(branches, deleted)``: mirror branches now at the newest
            commit, and lineage branches that were deleted.
        """
        last = plan.last_committed()
        move = last is not None
        if last is None:
            last = plan.resume_point
        if last is None or last.mirror_hash is None:
            logger.info("No mirror commits to reconcile; branches left untouched")
            return [], []

        branches = sorted(set(self.standard.branches_containing(last.standard_hash)))
        if not branches:
            logger.warning(
                "No standard branch contains %s; keeping replay branches",
                last.commit.short_hash,
            )
            return [], []

        for name in branches:
            # an up-to-date run never moves a branch backwards
            if not move and self.mirror.branch_exists(name):
                continue
            self.mirror.create_branch(name, last.mirror_hash)
            logger.info("Branch %s -> %s", name, last.mirror_hash[:12])
        self.mirror.checkout_branch(branches[0])

        deleted: list[str] = []
        for name in sorted(plan.branch_names - set(branches)):
            if self.mirror.branch_exists(name):
                self.mirror.delete_branch(name)
                deleted.append(name)
                logger.info("Deleted branch %s", name)
        return branches, deleted

    def push_branches(self) -> bool:
        """Push all mirror branches if enabled.  Returns whether it pushed."""
        if not self.push:
            logger.info("Push disabled; mirror branches stay local")
            return False
        self.mirror.push_all()
        logger.info("Pushed mirror branches")
        return True
