"""Filtered history replay engine.

Public API for replaying the history of a "standard" repository into a
"mirror" repository that only carries an allow-listed subset of paths.

Architecture
------------
Mirror commits carry a ``Mirror-Standard-Hash`` trailer naming the standard
commit they replay.  The mirror's own history is therefore the only state:
each run scans it for markers, resumes after the newest mirrored commit and
replays the rest.  Re-running with the same root is a no-op.

Modules:

- ``engine``     -- ``MirrorEngine``: orchestrates a full run.
- ``collector``  -- ancestry collection and mirrored-set resolution.
- ``planner``    -- ``ReplayPlan`` and lineage branch assignment.
- ``filter``     -- ``AllowList`` / ``PathFilter``.
- ``applier``    -- ``ChangeApplier``: writes filtered diffs to the mirror.
- ``committer``  -- ``MirrorCommitter``: resume, commit and merge units.
- ``resolver``   -- conflict policies (standard-wins, fail).
- ``reconciler`` -- ``BranchReconciler``: final branch layout and push.
- ``markers``    -- commit message trailer handling.
- ``models``     -- ``ReplayUnit``, ``MirrorReport`` and friends.
- ``reporter``   -- human-readable and JSON report formatting.

Usage example
-------------
::

    from history_mirror.backend import GitRepository
    from history_mirror.config import MirrorSettings
    from history_mirror.replay import MirrorEngine, format_mirror_report

    settings = MirrorSettings(
        standard_path="../standard",
        mirror_path="../mirror",
        component="core",
        folders=["buildSrc", "common"],
    )
    engine = MirrorEngine(
        GitRepository(settings.standard_path),
        GitRepository(settings.mirror_path),
        settings,
    )

    preview = engine.mirror("3f1c0d2", dry_run=True)
    report = engine.mirror("3f1c0d2")
    print(format_mirror_report(report))
"""

from .engine import MirrorEngine
from .filter import AllowList, PathFilter
from .markers import format_marker, parse_marker, with_marker
from .models import (
    MergeConflict,
    MirroredCommit,
    MirrorReport,
    ReplayKind,
    ReplayOutcome,
    ReplayStatus,
    ReplayUnit,
    UnitTransition,
)
from .planner import ReplayPlan, build_plan
from .reporter import format_mirror_report, format_plan_preview, report_to_json
from .resolver import CONFLICT_STRATEGIES, create_resolver

__all__ = [
    "AllowList",
    "CONFLICT_STRATEGIES",
    "MergeConflict",
    "MirrorEngine",
    "MirrorReport",
    "MirroredCommit",
    "PathFilter",
    "ReplayKind",
    "ReplayOutcome",
    "ReplayPlan",
    "ReplayStatus",
    "ReplayUnit",
    "UnitTransition",
    "build_plan",
    "create_resolver",
    "format_marker",
    "format_mirror_report",
    "format_plan_preview",
    "parse_marker",
    "report_to_json",
    "with_marker",
]
