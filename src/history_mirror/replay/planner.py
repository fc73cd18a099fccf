"""Replay plan builder.

Turns the standard ancestry (oldest first) and the mirrored set into a
``ReplayPlan``: an indexed arena of ``ReplayUnit`` objects plus the lookups
the committer needs.

Classification is one forward pass over the pre-sorted ancestry:

1. The last commit already present in the mirror is the single
   RESUME_POINT.
2. The resume point's ancestors are already represented and are dropped,
   as are other mirrored commits (kept only as positions for children).
3. Everything else is MERGE (several parents) or SIMPLE.

Each commit is also assigned a lineage branch: the root's first-parent
chain forms one lineage, every merged-in side line forms another.  A
lineage is named after the standard branch whose tip heads it, or gets a
scratch name that the branch reconciler prunes after the run.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable, Mapping, Sequence

from history_mirror.backend.base import BranchRef, CommitInfo
from history_mirror.errors import ReplayStateError, RootCommitNotFoundError
from history_mirror.replay.models import (
    MirroredCommit,
    ReplayKind,
    ReplayOutcome,
    ReplayStatus,
    ReplayUnit,
    UnitTransition,
)

logger = logging.getLogger(__name__)

SCRATCH_PREFIX = "mirror-replay/"


class ReplayPlan:
    """Ordered replay units with one-way state transitions.

    Units are never mutated; ``apply()`` swaps in an applied copy and
    appends a ``UnitTransition`` to ``transitions``.

    Args:
        units: Units in replay order (``unit.index`` must match position).
        ancestry: All collected standard commits by hash.
        branches: Lineage branch of every collected standard commit.
        mirrored: Standard commits already represented in the mirror.
    """

    def __init__(
        self,
        units: Sequence[ReplayUnit],
        ancestry: Mapping[str, CommitInfo],
        branches: Mapping[str, str],
        mirrored: Mapping[str, MirroredCommit],
    ) -> None:
        self._units: list[ReplayUnit] = list(units)
        self._ancestry = dict(ancestry)
        self._branches = dict(branches)
        self._mirrored = mirrored
        self._by_hash = {u.standard_hash: u.index for u in self._units}
        self.transitions: list[UnitTransition] = []

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def units(self) -> tuple[ReplayUnit, ...]:
        return tuple(self._units)

    def __len__(self) -> int:
        return len(self._units)

    def __getitem__(self, index: int) -> ReplayUnit:
        return self._units[index]

    @property
    def resume_point(self) -> ReplayUnit | None:
        for unit in self._units:
            if unit.kind == ReplayKind.RESUME_POINT:
                return unit
        return None

    def unit_for(self, standard_hash: str) -> ReplayUnit | None:
        index = self._by_hash.get(standard_hash)
        return None if index is None else self._units[index]

    def branch_of(self, standard_hash: str) -> str | None:
        """Lineage branch of a collected standard commit."""
        return self._branches.get(standard_hash)

    def mirrored_commit(self, standard_hash: str) -> MirroredCommit | None:
        return self._mirrored.get(standard_hash)

    @property
    def branch_names(self) -> set[str]:
        """Every branch touched by the units of this plan."""
        return {u.branch for u in self._units}

    def effective_mirror_hash(self, standard_hash: str | None) -> str | None:
        """Mirror commit currently representing *standard_hash*.

        Applied units give their recorded hash (inherited from the primary
        parent when they produced nothing).  Commits without a unit resolve
        to their known mirror commit, or fall back along primary parents.
        Returns ``None`` when no mirror position exists.
        """
        current = standard_hash
        while current is not None:
            unit = self.unit_for(current)
            if unit is not None:
                return unit.mirror_hash if unit.is_applied else None
            known = self._mirrored.get(current)
            if known is not None:
                return known.mirror_hash
            commit = self._ancestry.get(current)
            if commit is None:
                return None
            current = commit.primary_parent
        return None

    def last_committed(self) -> ReplayUnit | None:
        """Most recent applied unit that produced a mirror commit."""
        for unit in reversed(self._units):
            if unit.is_applied and unit.produced_commit:
                return unit
        return None

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def apply(
        self,
        index: int,
        outcome: ReplayOutcome,
        mirror_hash: str | None,
    ) -> ReplayUnit:
        """Mark unit *index* APPLIED with *outcome*.

        Raises:
            ReplayStateError: If the unit was already applied.
        """
        unit = self._units[index]
        if unit.is_applied:
            raise ReplayStateError(
                f"Unit {index} ({unit.commit.short_hash}) already applied "
                f"as {unit.outcome.value if unit.outcome else '?'}"
            )
        applied = unit.model_copy(
            update={
                "status": ReplayStatus.APPLIED,
                "outcome": outcome,
                "mirror_hash": mirror_hash,
            }
        )
        self._units[index] = applied
        self.transitions.append(
            UnitTransition(
                index=index,
                standard_hash=unit.standard_hash,
                outcome=outcome,
                mirror_hash=mirror_hash,
            )
        )
        return applied


# ----------------------------------------------------------------------
# Builder
# ----------------------------------------------------------------------


def build_plan(
    ancestry: Sequence[CommitInfo],
    mirrored: Mapping[str, MirroredCommit],
    root_hash: str,
    branch_tips: Iterable[BranchRef] = (),
    depth_limit: int | None = None,
) -> ReplayPlan:
    """Build the replay plan for mirroring *root_hash*.

    Args:
        ancestry: Standard commits, oldest first (see ``collect_ancestry``).
        mirrored: Standard hashes already represented in the mirror.
        root_hash: Full hash of the commit being mirrored.
        branch_tips: Standard branches, used to name lineages.
        depth_limit: Only used to explain a missing root.

    Raises:
        RootCommitNotFoundError: If *root_hash* is not in *ancestry*.
    """
    by_hash = {c.hash: c for c in ancestry}
    if root_hash not in by_hash:
        raise RootCommitNotFoundError(root_hash, depth_limit)

    branches = assign_lineages(by_hash, root_hash, branch_tips)

    resume_hash: str | None = None
    for commit in ancestry:
        if commit.hash in mirrored:
            resume_hash = commit.hash

    covered = (
        _ancestors_of(resume_hash, by_hash) if resume_hash is not None else set()
    )

    units: list[ReplayUnit] = []
    for commit in ancestry:
        if commit.hash == resume_hash:
            kind = ReplayKind.RESUME_POINT
        elif commit.hash in covered or commit.hash in mirrored:
            continue
        elif commit.is_merge:
            kind = ReplayKind.MERGE
        else:
            kind = ReplayKind.SIMPLE
        units.append(
            ReplayUnit(
                index=len(units),
                commit=commit,
                branch=branches[commit.hash],
                kind=kind,
            )
        )

    plan = ReplayPlan(units, by_hash, branches, mirrored)
    logger.info(
        "Replay plan: %d unit(s), resume point %s",
        len(units),
        resume_hash[:12] if resume_hash else "none",
    )
    return plan


def assign_lineages(
    commits: Mapping[str, CommitInfo],
    root_hash: str,
    branch_tips: Iterable[BranchRef] = (),
) -> dict[str, str]:
    """Assign every commit reachable from *root_hash* to a lineage branch.

    Lineages follow primary parents.  Non-primary merge parents start new
    lineages, visited breadth-first so naming is deterministic.
    """
    names_by_tip: dict[str, list[str]] = {}
    for ref in branch_tips:
        names_by_tip.setdefault(ref.commit_hash, []).append(ref.name)

    assigned: dict[str, str] = {}
    used_names: set[str] = set()
    heads: deque[str] = deque([root_hash])
    while heads:
        head = heads.popleft()
        if head in assigned or head not in commits:
            continue
        name = _lineage_name(head, names_by_tip, used_names)
        used_names.add(name)

        current: str | None = head
        while current is not None and current in commits and current not in assigned:
            assigned[current] = name
            commit = commits[current]
            heads.extend(commit.parents[1:])
            current = commit.primary_parent
    return assigned


def _lineage_name(
    head: str, names_by_tip: Mapping[str, list[str]], used: set[str]
) -> str:
    for name in sorted(names_by_tip.get(head, [])):
        if name not in used:
            return name
    return f"{SCRATCH_PREFIX}{head[:12]}"


def _ancestors_of(start: str, commits: Mapping[str, CommitInfo]) -> set[str]:
    """*start* and all its ancestors within *commits*."""
    seen = {start}
    stack = [start]
    while stack:
        for parent in commits[stack.pop()].parents:
            if parent in commits and parent not in seen:
                seen.add(parent)
                stack.append(parent)
    return seen
