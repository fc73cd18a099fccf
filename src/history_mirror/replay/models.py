"""Pydantic models for the history replay engine.

Defines the data contracts shared by the replay modules:

- ``ReplayKind``: how a standard commit is replayed.
- ``ReplayStatus`` / ``ReplayOutcome``: where a unit is in its lifecycle
  and why it got there.
- ``MirroredCommit``: a standard commit already represented in the mirror.
- ``ReplayUnit``: one standard commit scheduled for replay.
- ``UnitTransition``: audit record of a unit being applied.
- ``MergeConflict``: one path left in conflict by a mirror merge.
- ``MirrorReport``: aggregate result of a run.

All models are frozen (immutable); state changes produce new instances.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from history_mirror.backend.base import CommitInfo


class ReplayKind(str, Enum):
    """Classification assigned by the plan builder."""

    RESUME_POINT = "resume_point"
    SIMPLE = "simple"
    MERGE = "merge"


class ReplayStatus(str, Enum):
    """Lifecycle of a replay unit.  PENDING -> APPLIED, never back."""

    PENDING = "pending"
    APPLIED = "applied"


class ReplayOutcome(str, Enum):
    """Why a unit reached APPLIED."""

    RESUMED = "resumed"
    COMMITTED = "committed"
    MERGED = "merged"
    SKIPPED_EMPTY = "skipped_empty"
    SKIPPED_MISSING_BRANCH = "skipped_missing_branch"


class MirroredCommit(BaseModel):
    """Location of a standard commit's counterpart in the mirror.

    Attributes:
        standard_hash: Hash carried by the mirror commit's marker.
        mirror_hash: Hash of the mirror commit.
        branch: Mirror branch whose history contains it.
    """

    standard_hash: str
    mirror_hash: str
    branch: str

    model_config = {"frozen": True}


class ReplayUnit(BaseModel):
    """One standard commit in the replay plan.

    Attributes:
        index: Position in the plan.
        commit: The standard commit.
        branch: Lineage branch the commit is replayed on.
        kind: Classification from the plan builder.
        status: Lifecycle state.
        outcome: Set once the unit is applied.
        mirror_hash: Mirror commit representing this unit once applied.
            For skipped units this is inherited from the primary parent
            and may be ``None``.
    """

    index: int
    commit: CommitInfo
    branch: str
    kind: ReplayKind
    status: ReplayStatus = ReplayStatus.PENDING
    outcome: ReplayOutcome | None = None
    mirror_hash: str | None = None

    model_config = {"frozen": True}

    @property
    def standard_hash(self) -> str:
        return self.commit.hash

    @property
    def is_applied(self) -> bool:
        return self.status == ReplayStatus.APPLIED

    @property
    def produced_commit(self) -> bool:
        """True if applying the unit created a new mirror commit."""
        return self.outcome in (ReplayOutcome.COMMITTED, ReplayOutcome.MERGED)


class UnitTransition(BaseModel):
    """Audit record for one PENDING -> APPLIED transition."""

    index: int
    standard_hash: str
    outcome: ReplayOutcome
    mirror_hash: str | None = None

    model_config = {"frozen": True}


class MergeConflict(BaseModel):
    """A path left in conflict while replaying a standard merge commit.

    Attributes:
        path: Repository-relative path.
        merge_commit: Hash of the standard merge commit being replayed.
        standard_content: Content of *path* at the merge commit, or
            ``None`` if the standard commit does not have the path.
        standard_executable: Executable bit of the standard file.
    """

    path: str
    merge_commit: str
    standard_content: bytes | None = None
    standard_executable: bool = False

    model_config = {"frozen": True}


class MirrorReport(BaseModel):
    """Aggregate report for one mirroring run.

    Attributes:
        root_hash: The standard commit that was mirrored.
        dry_run: Whether the plan was only computed, not applied.
        resume_hash: Standard hash of the resume point, if any.
        units: Replay units in plan order, in their final state.
        branches: Mirror branches pointed at the final commit.
        deleted_branches: Scratch branches removed after the replay.
        pushed: Whether the mirror was pushed.
        started_at: ISO 8601 timestamp when the run started.
        completed_at: ISO 8601 timestamp when the run completed.
    """

    root_hash: str
    dry_run: bool = False
    resume_hash: str | None = None
    units: list[ReplayUnit] = []
    branches: list[str] = []
    deleted_branches: list[str] = []
    pushed: bool = False
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def _with_outcome(self, outcome: ReplayOutcome) -> list[ReplayUnit]:
        return [u for u in self.units if u.outcome == outcome]

    @property
    def committed(self) -> list[ReplayUnit]:
        return self._with_outcome(ReplayOutcome.COMMITTED)

    @property
    def merged(self) -> list[ReplayUnit]:
        return self._with_outcome(ReplayOutcome.MERGED)

    @property
    def skipped(self) -> list[ReplayUnit]:
        """Units that reached APPLIED without producing a mirror commit."""
        return [
            u
            for u in self.units
            if u.outcome
            in (
                ReplayOutcome.SKIPPED_EMPTY,
                ReplayOutcome.SKIPPED_MISSING_BRANCH,
            )
        ]

    @property
    def pending(self) -> list[ReplayUnit]:
        return [u for u in self.units if not u.is_applied]

    @property
    def new_commit_count(self) -> int:
        return len(self.committed) + len(self.merged)

    def summary(self) -> str:
        """One line per count, for logs."""
        lines = [
            f"Mirror report for {self.root_hash[:12]}"
            + (" (dry run)" if self.dry_run else ""),
            f"  Units:    {len(self.units)}",
            f"  Commits:  {len(self.committed)}",
            f"  Merges:   {len(self.merged)}",
            f"  Skipped:  {len(self.skipped)}",
            f"  Branches: {', '.join(self.branches) or '-'}",
        ]
        return "\n".join(lines)
