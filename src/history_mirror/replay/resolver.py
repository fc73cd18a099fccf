"""Conflict policies for replayed merges.

When merging two mirror branches leaves paths in conflict, the committer
asks a ``ConflictResolver`` what each path should contain.  The policies
are deliberately simple and never merge file content:

- ``StandardWinsResolver``: take the standard repository's content at the
  merge commit being replayed (the file is deleted if that commit has no
  such path).
- ``FailOnConflictResolver``: abort the run.

The ``create_resolver()`` factory maps config strategy strings to resolver
instances, so the policy can change without touching the replay loop.
"""

from __future__ import annotations

import logging
from typing import Protocol

from history_mirror.errors import MergeConflictError
from history_mirror.replay.models import MergeConflict

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ConflictResolver(Protocol):
    """Protocol that all conflict resolvers must satisfy."""

    def resolve(self, conflict: MergeConflict) -> str:
        """Determine the resolution for one conflicted path.

        Returns:
            Resolution string, e.g. ``"standard"``.
        """
        ...  # pragma: no cover

    def get_resolved_content(
        self, conflict: MergeConflict, resolution: str
    ) -> bytes | None:
        """Content to write for *resolution*; ``None`` deletes the path."""
        ...  # pragma: no cover


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------


class StandardWinsResolver:
    """Always resolve in favour of the standard repository."""

    def resolve(self, conflict: MergeConflict) -> str:
        logger.info(
            "Conflict on %s resolved with standard content of %s",
            conflict.path,
            conflict.merge_commit[:12],
        )
        return "standard"

    def get_resolved_content(
        self, conflict: MergeConflict, resolution: str
    ) -> bytes | None:
        if resolution != "standard":
            raise ValueError(f"Unsupported resolution: '{resolution}'")
        return conflict.standard_content


class FailOnConflictResolver:
    """Refuse to resolve; the run aborts on the first conflicted path."""

    def resolve(self, conflict: MergeConflict) -> str:
        raise MergeConflictError(conflict.merge_commit, [conflict.path])

    def get_resolved_content(
        self, conflict: MergeConflict, resolution: str
    ) -> bytes | None:
        raise MergeConflictError(conflict.merge_commit, [conflict.path])


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_STRATEGY_MAP: dict[str, type] = {
    "standard-wins": StandardWinsResolver,
    "fail": FailOnConflictResolver,
}

CONFLICT_STRATEGIES = tuple(sorted(_STRATEGY_MAP))


def create_resolver(strategy: str) -> ConflictResolver:
    """Create a conflict resolver for the given strategy string.

    Raises:
        ValueError: If the strategy string is not recognised.
    """
    cls = _STRATEGY_MAP.get(strategy)
    if cls is None:
        raise ValueError(
            f"Unknown conflict strategy: '{strategy}'. "
            f"Valid strategies: {list(CONFLICT_STRATEGIES)}"
        )
    return cls()  # type: ignore[return-value]
