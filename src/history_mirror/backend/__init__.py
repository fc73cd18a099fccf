"""Version-control backend shared by the replay engine and the CLI."""

from .base import (
    BranchRef,
    ChangeType,
    CommitInfo,
    DiffEntry,
    FileBlob,
    RepositoryBackend,
)
from .git_repository import GitRepository

__all__ = [
    "BranchRef",
    "ChangeType",
    "CommitInfo",
    "DiffEntry",
    "FileBlob",
    "GitRepository",
    "RepositoryBackend",
]
