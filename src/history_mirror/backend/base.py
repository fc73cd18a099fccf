"""Version-control backend interface and its data contracts.

The replay engine never talks to git directly.  It consumes the
``RepositoryBackend`` protocol below, which ``GitRepository`` implements
with GitPython and which the test-suite implements in memory.

Data contracts:

- ``CommitInfo``: the commit attributes the engine reads.
- ``BranchRef``: a branch name and the commit it points at.
- ``ChangeType`` / ``DiffEntry``: one changed path between two commits.
- ``FileBlob``: file content at a given commit.

All models are frozen (immutable).
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel


class CommitInfo(BaseModel):
    """A commit as seen by the engine.

    Attributes:
        hash: Full 40-character commit hash.
        parents: Parent hashes, primary parent first.
        message: Full commit message.
        author_name: Author name.
        author_email: Author e-mail.
        author_date: Author date in git raw form (``"<unix> <+hhmm>"``).
        committer_name: Committer name.
        committer_email: Committer e-mail.
        committer_date: Committer date in git raw form.
    """

    hash: str
    parents: tuple[str, ...] = ()
    message: str = ""
    author_name: str = ""
    author_email: str = ""
    author_date: str | None = None
    committer_name: str = ""
    committer_email: str = ""
    committer_date: str | None = None

    model_config = {"frozen": True}

    @property
    def primary_parent(self) -> str | None:
        """The first parent, or ``None`` for a root commit."""
        return self.parents[0] if self.parents else None

    @property
    def is_merge(self) -> bool:
        return len(self.parents) > 1

    @property
    def short_hash(self) -> str:
        return self.hash[:12]

    @property
    def subject(self) -> str:
        """First line of the commit message."""
        return self.message.strip().splitlines()[0] if self.message.strip() else ""


class BranchRef(BaseModel):
    """A branch name and the commit it points at."""

    name: str
    commit_hash: str

    model_config = {"frozen": True}


class ChangeType(str, Enum):
    """Kinds of change reported by a diff."""

    ADD = "add"
    COPY = "copy"
    DELETE = "delete"
    MODIFY = "modify"
    RENAME = "rename"


class DiffEntry(BaseModel):
    """A single changed path between a commit and one of its parents.

    ``old_path`` is ``None`` for ADD; ``new_path`` is ``None`` for DELETE.
    """

    change_type: ChangeType
    old_path: str | None = None
    new_path: str | None = None

    model_config = {"frozen": True}


class FileBlob(BaseModel):
    """Content of a file at a given commit."""

    path: str
    data: bytes
    executable: bool = False

    model_config = {"frozen": True}


class RepositoryBackend(Protocol):
    """Operations the replay engine needs from a repository."""

    @property
    def root(self) -> Path:
        """Root of the repository's working tree."""
        ...  # pragma: no cover

    def resolve_commit(self, rev: str) -> CommitInfo | None:
        """Resolve *rev* to a commit, or ``None`` if it does not exist."""
        ...  # pragma: no cover

    def list_commits(self, rev: str, depth_limit: int) -> list[CommitInfo]:
        """List commits reachable from *rev* within *depth_limit* generations.

        The commit *rev* itself is generation 1.  Order is unspecified.
        """
        ...  # pragma: no cover

    def list_branches(self) -> list[BranchRef]:
        """List all branches with their tip commits."""
        ...  # pragma: no cover

    def branches_containing(self, commit_hash: str) -> list[str]:
        """Names of the branches whose history contains *commit_hash*."""
        ...  # pragma: no cover

    def diff(
        self, commit_hash: str, parent_hash: str | None
    ) -> list[DiffEntry]:
        """Changes introduced by *commit_hash* relative to *parent_hash*.

        A ``None`` parent diffs against the empty tree.
        """
        ...  # pragma: no cover

    def read_file(self, commit_hash: str, path: str) -> FileBlob | None:
        """Content of *path* at *commit_hash*, or ``None`` if absent."""
        ...  # pragma: no cover

    def checkout_branch(
        self, name: str, start_point: str | None = None
    ) -> None:
        """Check out branch *name*.

        With *start_point* the branch is created or moved there first.
        Without it an existing branch is checked out as-is and a missing
        one is created at the current HEAD.
        """
        ...  # pragma: no cover

    def discard_changes(self) -> None:
        """Drop uncommitted work in the working tree.

        Staged and unstaged edits, untracked files and a half-finished merge
        are all thrown away, leaving the tree equal to HEAD.
        """
        ...  # pragma: no cover

    def create_branch(self, name: str, commit_hash: str) -> None:
        """Create branch *name* at *commit_hash*, moving it if it exists."""
        ...  # pragma: no cover

    def delete_branch(self, name: str) -> None:
        """Delete branch *name*."""
        ...  # pragma: no cover

    def branch_exists(self, name: str) -> bool:
        ...  # pragma: no cover

    def commit(self, message: str, source: CommitInfo) -> str | None:
        """Stage the whole working tree and commit it.

        Author and committer identity and dates are copied from *source*.
        Returns the new hash, or ``None`` when there was nothing to commit.
        """
        ...  # pragma: no cover

    def merge(self, branch: str) -> list[str]:
        """Merge *branch* into the checked-out branch without committing.

        Returns repository-relative paths left in conflict.
        """
        ...  # pragma: no cover

    def push_all(self) -> None:
        """Push all local branches to the configured remote."""
        ...  # pragma: no cover
