"""Mirror report formatting functions.

Provides human-readable and machine-readable output for mirroring runs:

- ``format_mirror_report`` -- full post-run summary.
- ``format_plan_preview`` -- dry-run preview grouped by replay kind.
- ``report_to_json`` -- structured dict for ``--json`` output.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import MirrorReport, ReplayUnit

from .models import ReplayKind, ReplayOutcome

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def _unit_line(unit: ReplayUnit) -> str:
    line = f"  {unit.commit.short_hash} [{unit.branch}] {unit.commit.subject}"
    if unit.mirror_hash and unit.produced_commit:
        line += f" -> {unit.mirror_hash[:12]}"
    return line


def format_mirror_report(report: MirrorReport) -> str:
    """Format a completed mirror report as human-readable text.

    Sections are only included when they contain at least one unit.
    Skipped commits are listed by outcome so a missing merge is visible.

    Args:
        report: The completed mirror report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = f"Mirror report for {report.root_hash[:12]}"
    if report.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    if report.resume_hash:
        lines.append(f"Resumed after: {report.resume_hash[:12]}")
    lines.append("")

    lines.append(
        f"Replayed {len(report.units)} commits: "
        f"{len(report.committed)} committed, {len(report.merged)} merged, "
        f"{len(report.skipped)} skipped"
    )
    lines.append("")

    if report.committed:
        lines.append("Committed:")
        lines.extend(_unit_line(u) for u in report.committed)
        lines.append("")

    if report.merged:
        lines.append("Merged:")
        lines.extend(_unit_line(u) for u in report.merged)
        lines.append("")

    missing = [
        u for u in report.skipped
        if u.outcome == ReplayOutcome.SKIPPED_MISSING_BRANCH
    ]
    if missing:
        lines.append("Merges skipped (parent not mirrored):")
        lines.extend(_unit_line(u) for u in missing)
        lines.append("")

    empty = len(report.skipped) - len(missing)
    if empty > 0:
        lines.append(f"Skipped: {empty} commits (nothing inside the allow-list)")
        lines.append("")

    if report.branches:
        lines.append(f"Branches: {', '.join(report.branches)}")
    if report.deleted_branches:
        lines.append(f"Deleted: {', '.join(report.deleted_branches)}")
    lines.append("Pushed: yes" if report.pushed else "Pushed: no")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Dry-run preview
# ------------------------------------------------------------------


def format_plan_preview(report: MirrorReport) -> str:
    """Format a dry-run preview grouped by replay kind.

    Args:
        report: A dry-run mirror report (``dry_run=True``).

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    lines.append("DRY RUN -- No changes will be made")
    lines.append(f"Root: {report.root_hash}")
    lines.append("")

    groups: dict[ReplayKind, list[ReplayUnit]] = defaultdict(list)
    for unit in report.units:
        groups[unit.kind].append(unit)

    for kind in (ReplayKind.RESUME_POINT, ReplayKind.SIMPLE, ReplayKind.MERGE):
        if kind not in groups:
            continue
        label = kind.value.upper().replace("_", " ")
        lines.append(f"[{label}]")
        lines.extend(_unit_line(u) for u in groups[kind])
        lines.append("")

    if not any(k != ReplayKind.RESUME_POINT for k in groups):
        lines.append("Mirror is up to date.")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: MirrorReport) -> dict:
    """Convert a mirror report to a structured dict for JSON serialisation.

    Args:
        report: The mirror report.

    Returns:
        Dict with run info, counts, and per-unit details.
    """
    units = []
    for u in report.units:
        entry: dict = {
            "index": u.index,
            "standard_hash": u.standard_hash,
            "branch": u.branch,
            "kind": u.kind.value,
            "status": u.status.value,
        }
        if u.outcome is not None:
            entry["outcome"] = u.outcome.value
        if u.mirror_hash:
            entry["mirror_hash"] = u.mirror_hash
        units.append(entry)

    return {
        "root_hash": report.root_hash,
        "dry_run": report.dry_run,
        "resume_hash": report.resume_hash,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": {
            "total": len(report.units),
            "committed": len(report.committed),
            "merged": len(report.merged),
            "skipped": len(report.skipped),
            "pending": len(report.pending),
        },
        "branches": list(report.branches),
        "deleted_branches": list(report.deleted_branches),
        "pushed": report.pushed,
        "units": units,
    }
