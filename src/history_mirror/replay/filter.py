"""Allow-list path filter.

Decides whether a changed path belongs to the mirrored subset.  A path is
in scope when it equals an allow-listed file, or when its directory (the
path with the final segment removed) is an allow-listed folder or lies
below one.  Matching on the directory means moving a file within one
folder never crosses a folder boundary.
"""

from __future__ import annotations

from collections.abc import Iterable
from posixpath import dirname

from pydantic import BaseModel, field_validator

from history_mirror.backend.base import ChangeType, DiffEntry


class AllowList(BaseModel):
    """Immutable set of mirrored files and folders.

    Attributes:
        files: Exact repository-relative file paths.
        folders: Directory prefixes, stored without trailing slash.
    """

    files: frozenset[str] = frozenset()
    folders: frozenset[str] = frozenset()

    model_config = {"frozen": True}

    @field_validator("files", "folders", mode="before")
    @classmethod
    def _normalise(cls, value: Iterable[str]) -> frozenset[str]:
        return frozenset(
            p.strip().strip("/") for p in value if p and p.strip().strip("/")
        )

    @classmethod
    def build(
        cls,
        folders: Iterable[str] = (),
        files: Iterable[str] = (),
        component: str | None = None,
    ) -> AllowList:
        """Build an allow-list, adding *component* to the folders."""
        all_folders = list(folders)
        if component:
            all_folders.append(component)
        return cls(files=frozenset(files), folders=frozenset(all_folders))

    @property
    def is_empty(self) -> bool:
        return not self.files and not self.folders


class PathFilter:
    """Filter diff entries against an ``AllowList``."""

    def __init__(self, allow_list: AllowList) -> None:
        self._allow_list = allow_list

    @property
    def allow_list(self) -> AllowList:
        return self._allow_list

    def matches(self, path: str | None) -> bool:
        """Return ``True`` if *path* is inside the mirrored subset."""
        if not path:
            return False
        if path in self._allow_list.files:
            return True
        directory = dirname(path)
        return any(
            directory == folder or directory.startswith(folder + "/")
            for folder in self._allow_list.folders
        )

    def in_scope(self, entry: DiffEntry) -> bool:
        """Return ``True`` if *entry* must be replayed into the mirror."""
        if entry.change_type in (ChangeType.ADD, ChangeType.MODIFY):
            return self.matches(entry.new_path)
        if entry.change_type == ChangeType.DELETE:
            return self.matches(entry.old_path)
        # COPY / RENAME: moving into or out of the subset still counts
        return self.matches(entry.new_path) or self.matches(entry.old_path)

    def filter(self, entries: Iterable[DiffEntry]) -> list[DiffEntry]:
        return [e for e in entries if self.in_scope(e)]
