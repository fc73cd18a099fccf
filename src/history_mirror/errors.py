"""Exception hierarchy for history-mirror.

Every error raised here aborts the current mirroring run.  Skipped commits
and skipped merges are not errors; they are recorded as replay outcomes.
"""

from __future__ import annotations


class MirrorError(Exception):
    """Base class for all mirroring failures."""


class CommitNotFoundError(MirrorError):
    """A requested commit hash does not resolve in the repository."""

    def __init__(self, commit_hash: str, repository: str | None = None) -> None:
        self.commit_hash = commit_hash
        self.repository = repository
        where = f" in {repository}" if repository else ""
        super().__init__(f"Commit '{commit_hash}' not found{where}")


class RootCommitNotFoundError(MirrorError):
    """The mirroring root is absent from the collected ancestry."""

    def __init__(self, commit_hash: str, depth_limit: int | None = None) -> None:
        self.commit_hash = commit_hash
        self.depth_limit = depth_limit
        hint = (
            f" (depth limit {depth_limit}); raise the standard depth limit "
            "or pick a closer root"
            if depth_limit is not None
            else ""
        )
        super().__init__(
            f"Root commit '{commit_hash}' is not part of the collected "
            f"ancestry{hint}"
        )


class BackendError(MirrorError):
    """A version-control operation failed."""

    def __init__(self, operation: str, ref: str | None, detail: str) -> None:
        self.operation = operation
        self.ref = ref
        self.detail = detail
        target = f" '{ref}'" if ref else ""
        super().__init__(f"git {operation}{target} failed: {detail}")


class MergeConflictError(MirrorError):
    """Raised by the ``fail`` conflict policy when a merge conflicts."""

    def __init__(self, commit_hash: str, paths: list[str]) -> None:
        self.commit_hash = commit_hash
        self.paths = list(paths)
        super().__init__(
            f"Merge of standard commit '{commit_hash}' conflicts on: "
            + ", ".join(self.paths)
        )


class ReplayStateError(MirrorError):
    """A replay unit was transitioned more than once."""
