"""Apply filtered standard-repository changes to the mirror working tree.

Content is always read from the standard repository's object store at the
commit being replayed, never from its working tree, so the standard
checkout is left untouched.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from history_mirror.backend.base import ChangeType, DiffEntry, RepositoryBackend
from history_mirror.errors import BackendError
from history_mirror.file_handler import remove_file, resolve_in_root, write_file
from history_mirror.replay.filter import PathFilter

logger = logging.getLogger(__name__)


class ChangeApplier:
    """Mutate the mirror working tree to match standard diff entries.

    Endpoints outside the allow-list are never written: a rename out of the
    mirrored subset only deletes the old path, a rename into it only adds
    the new one.

    Args:
        standard: Repository the content is read from.
        mirror_root: Root of the mirror working tree.
        path_filter: Allow-list filter for individual endpoints.
    """

    def __init__(
        self,
        standard: RepositoryBackend,
        mirror_root: Path,
        path_filter: PathFilter,
    ) -> None:
        self._standard = standard
        self._mirror_root = mirror_root
        self._filter = path_filter

    def apply(self, commit_hash: str, entries: Iterable[DiffEntry]) -> int:
        """Apply *entries* from standard commit *commit_hash*.

        Returns:
            Number of entries applied.
        """
        count = 0
        for entry in entries:
            handler = {
                ChangeType.ADD: self.add,
                ChangeType.COPY: self.copy,
                ChangeType.DELETE: self.delete,
                ChangeType.MODIFY: self.modify,
                ChangeType.RENAME: self.rename,
            }[entry.change_type]
            handler(commit_hash, entry)
            count += 1
        return count

    # ------------------------------------------------------------------
    # Change kinds
    # ------------------------------------------------------------------

    def add(self, commit_hash: str, entry: DiffEntry) -> None:
        self._write_from_standard(commit_hash, entry.new_path)

    def modify(self, commit_hash: str, entry: DiffEntry) -> None:
        self._write_from_standard(commit_hash, entry.new_path)

    def delete(self, commit_hash: str, entry: DiffEntry) -> None:
        self._remove(entry.old_path)

    def copy(self, commit_hash: str, entry: DiffEntry) -> None:
        self._write_from_standard(commit_hash, entry.new_path)

    def rename(self, commit_hash: str, entry: DiffEntry) -> None:
        self._write_from_standard(commit_hash, entry.new_path)
        if entry.old_path != entry.new_path:
            self._remove(entry.old_path)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _write_from_standard(self, commit_hash: str, path: str | None) -> None:
        if not path or not self._filter.matches(path):
            return
        blob = self._standard.read_file(commit_hash, path)
        if blob is None:
            raise BackendError(
                "read", f"{commit_hash}:{path}", "path missing from commit"
            )
        written = write_file(
            resolve_in_root(self._mirror_root, path), blob.data, blob.executable
        )
        logger.debug("Wrote %s (%d bytes)", path, written)

    def _remove(self, path: str | None) -> None:
        if not path or not self._filter.matches(path):
            return
        if remove_file(resolve_in_root(self._mirror_root, path), self._mirror_root):
            logger.debug("Removed %s", path)
        else:
            logger.debug("Nothing to remove at %s", path)
