"""Replay plan execution against the mirror repository.

``MirrorCommitter`` walks a ``ReplayPlan`` strictly in order and applies
each unit:

- RESUME_POINT: position its branch at the known mirror commit, dropping
  whatever an aborted earlier run left in the working tree.
- SIMPLE: position, apply the filtered diff, commit with a marker.
- MERGE: position both parents' branches, merge, settle conflicts through
  the conflict resolver, commit with a marker.

Every unit ends APPLIED.  Units that produce no mirror commit inherit the
mirror hash of their primary parent so their children still have a place
to start from.
"""

from __future__ import annotations

import logging
from pathlib import Path

from history_mirror.backend.base import RepositoryBackend
from history_mirror.errors import ReplayStateError
from history_mirror.file_handler import remove_file, resolve_in_root, write_file
from history_mirror.replay.applier import ChangeApplier
from history_mirror.replay.filter import PathFilter
from history_mirror.replay.markers import with_marker
from history_mirror.replay.models import (
    MergeConflict,
    ReplayKind,
    ReplayOutcome,
    ReplayUnit,
)
from history_mirror.replay.planner import SCRATCH_PREFIX, ReplayPlan
from history_mirror.replay.resolver import ConflictResolver

logger = logging.getLogger(__name__)


class MirrorCommitter:
    """Apply replay units to the mirror repository.

    Args:
        standard: Repository the history is read from.
        mirror: Repository the filtered history is written to.
        path_filter: Allow-list filter.
        resolver: Conflict policy for replayed merges.
        applier: Change applier; built from the other arguments if omitted.
    """

    def __init__(
        self,
        standard: RepositoryBackend,
        mirror: RepositoryBackend,
        path_filter: PathFilter,
        resolver: ConflictResolver,
        applier: ChangeApplier | None = None,
    ) -> None:
        self.standard = standard
        self.mirror = mirror
        self.path_filter = path_filter
        self.resolver = resolver
        self.applier = applier or ChangeApplier(standard, mirror.root, path_filter)

    def apply_plan(self, plan: ReplayPlan) -> None:
        """Apply every pending unit of *plan* in order."""
        handlers = {
            ReplayKind.RESUME_POINT: self._resume,
            ReplayKind.SIMPLE: self._commit,
            ReplayKind.MERGE: self._merge,
        }
        for index in range(len(plan)):
            unit = plan[index]
            if unit.is_applied:
                continue
            applied = handlers[unit.kind](plan, unit)
            logger.info(
                "[%d/%d] %s %s on %s -> %s",
                index + 1,
                len(plan),
                applied.outcome.value if applied.outcome else "?",
                unit.commit.short_hash,
                unit.branch,
                applied.mirror_hash[:12] if applied.mirror_hash else "-",
            )

    # ------------------------------------------------------------------
    # Unit kinds
    # ------------------------------------------------------------------

    def _resume(self, plan: ReplayPlan, unit: ReplayUnit) -> ReplayUnit:
        known = plan.mirrored_commit(unit.standard_hash)
        if known is None:
            raise ReplayStateError(
                f"Resume point {unit.commit.short_hash} has no mirror commit"
            )
        self._position(unit.branch, known.mirror_hash)
        return plan.apply(unit.index, ReplayOutcome.RESUMED, known.mirror_hash)

    def _commit(self, plan: ReplayPlan, unit: ReplayUnit) -> ReplayUnit:
        commit = unit.commit
        parent_mirror = plan.effective_mirror_hash(commit.primary_parent)

        entries = self.path_filter.filter(
            self.standard.diff(commit.hash, commit.primary_parent)
        )
        if not entries:
            logger.info(
                "Skipping %s: no changes inside the allow-list", commit.short_hash
            )
            return plan.apply(unit.index, ReplayOutcome.SKIPPED_EMPTY, parent_mirror)

        self._position(unit.branch, parent_mirror)
        self.applier.apply(commit.hash, entries)
        new_hash = self.mirror.commit(with_marker(commit.message, commit.hash), commit)
        if new_hash is None:
            logger.info(
                "Skipping %s: filtered changes left the mirror unchanged",
                commit.short_hash,
            )
            return plan.apply(unit.index, ReplayOutcome.SKIPPED_EMPTY, parent_mirror)
        return plan.apply(unit.index, ReplayOutcome.COMMITTED, new_hash)

    def _merge(self, plan: ReplayPlan, unit: ReplayUnit) -> ReplayUnit:
        commit = unit.commit
        primary_parent, secondary_parent = commit.parents[0], commit.parents[1]
        primary_mirror = plan.effective_mirror_hash(primary_parent)
        secondary_mirror = plan.effective_mirror_hash(secondary_parent)

        if primary_mirror is None or secondary_mirror is None:
            missing = secondary_parent if primary_mirror is not None else primary_parent
            logger.info(
                "Skipping merge %s: parent %s has no mirror branch",
                commit.short_hash,
                missing[:12],
            )
            return plan.apply(
                unit.index, ReplayOutcome.SKIPPED_MISSING_BRANCH, primary_mirror
            )

        secondary = plan.branch_of(secondary_parent)
        temporary = secondary is None or secondary == unit.branch
        if temporary:
            secondary = f"{SCRATCH_PREFIX}{secondary_parent[:12]}"

        self._position(unit.branch, primary_mirror)
        self.mirror.create_branch(secondary, secondary_mirror)
        conflicts = self.mirror.merge(secondary)
        for path in conflicts:
            self._settle_conflict(commit.hash, path)

        new_hash = self.mirror.commit(with_marker(commit.message, commit.hash), commit)
        if temporary:
            self.mirror.delete_branch(secondary)
        if new_hash is None:
            logger.info("Skipping merge %s: nothing to merge", commit.short_hash)
            return plan.apply(unit.index, ReplayOutcome.SKIPPED_EMPTY, primary_mirror)
        return plan.apply(unit.index, ReplayOutcome.MERGED, new_hash)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _position(self, branch: str, mirror_hash: str | None) -> None:
        """Check out *branch* at *mirror_hash* on a clean working tree.

        Leftovers of an aborted run (files written by the applier, a
        half-finished merge) must never reach the next mirror commit.
        """
        self.mirror.discard_changes()
        if mirror_hash is not None:
            self.mirror.checkout_branch(branch, mirror_hash)
        else:
            self.mirror.checkout_branch(branch)

    def _settle_conflict(self, merge_commit: str, path: str) -> None:
        blob = self.standard.read_file(merge_commit, path)
        conflict = MergeConflict(
            path=path,
            merge_commit=merge_commit,
            standard_content=blob.data if blob is not None else None,
            standard_executable=blob.executable if blob is not None else False,
        )
        resolution = self.resolver.resolve(conflict)
        content = self.resolver.get_resolved_content(conflict, resolution)

        root: Path = self.mirror.root
        target = resolve_in_root(root, path)
        if content is None:
            remove_file(target, root)
            logger.info("Conflict on %s resolved by deleting it", path)
        else:
            write_file(target, content, conflict.standard_executable)
            logger.debug("Conflict on %s resolved (%s)", path, resolution)
