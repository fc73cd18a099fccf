"""Shared pytest fixtures for history-mirror tests.

``FakeRepository`` implements the ``RepositoryBackend`` protocol in memory:
commits are full file snapshots, branches are a name -> hash dict.  The
checked-out tree is materialised on disk under ``root`` so the change
applier and conflict settlement work on real files, exactly as they do
against a git working tree.
"""

from __future__ import annotations

import hashlib
import shutil
import stat
from collections import deque
from pathlib import Path

import pytest
from dotenv import load_dotenv

from history_mirror.backend.base import (
    BranchRef,
    ChangeType,
    CommitInfo,
    DiffEntry,
    FileBlob,
)
from history_mirror.config import MirrorSettings
from history_mirror.errors import BackendError
from history_mirror.file_handler import write_file

load_dotenv()

Tree = dict[str, tuple[bytes, bool]]


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "git: test drives the real git executable through GitPython"
    )


def pytest_collection_modifyitems(config, items):
    """Skip real-git tests when the git executable is missing."""
    if shutil.which("git") is not None:
        return
    skip_git = pytest.mark.skip(reason="git executable not found")
    for item in items:
        if "git" in item.keywords:
            item.add_marker(skip_git)


# ---------------------------------------------------------------------------
# In-memory repository
# ---------------------------------------------------------------------------


class FakeRepository:
    """Snapshot-based ``RepositoryBackend`` for tests.

    Args:
        root: Directory holding the materialised working tree.
        name: Used to make hashes distinct between repositories.
    """

    def __init__(self, root: Path, name: str = "repo") -> None:
        self._root = root
        self._root.mkdir(parents=True, exist_ok=True)
        self.name = name
        self.commits: dict[str, CommitInfo] = {}
        self.trees: dict[str, Tree] = {}
        self.branches: dict[str, str] = {}
        self.head: str | None = None
        self.merge_head: str | None = None
        self.pushes = 0
        self.calls: list[tuple] = []
        self._counter = 0

    @property
    def root(self) -> Path:
        return self._root

    # ------------------------------------------------------------------
    # Test builders
    # ------------------------------------------------------------------

    def make_commit(
        self,
        message: str,
        files: dict[str, str | bytes | None] | None = None,
        parents: tuple[str, ...] = (),
        branch: str | None = None,
        executable: frozenset[str] = frozenset(),
    ) -> str:
        """Create a commit on top of ``parents[0]``'s tree.

        ``files`` maps paths to new content; ``None`` deletes the path.
        When *branch* is given the branch is moved to the new commit.
        """
        tree: Tree = dict(self.trees[parents[0]]) if parents else {}
        for path, content in (files or {}).items():
            if content is None:
                tree.pop(path, None)
            else:
                data = content.encode() if isinstance(content, str) else content
                tree[path] = (data, path in executable)
        hexsha = self._store(message, parents, tree, CommitInfo(hash="0" * 40))
        if branch is not None:
            self.branches[branch] = hexsha
        return hexsha

    def tree_of(self, rev: str) -> dict[str, bytes]:
        """File contents of a branch or commit, without exec bits."""
        hexsha = self.branches.get(rev, rev)
        return {p: data for p, (data, _) in self.trees[hexsha].items()}

    def history(self, rev: str) -> list[CommitInfo]:
        """First-parent history of *rev*, newest first."""
        current: str | None = self.branches.get(rev, rev)
        result = []
        while current is not None:
            commit = self.commits[current]
            result.append(commit)
            current = commit.primary_parent
        return result

    def _store(
        self, message: str, parents: tuple[str, ...], tree: Tree, source: CommitInfo
    ) -> str:
        self._counter += 1
        hexsha = hashlib.sha1(
            f"{self.name}:{self._counter}:{message}".encode()
        ).hexdigest()
        self.commits[hexsha] = CommitInfo(
            hash=hexsha,
            parents=tuple(parents),
            message=message,
            author_name=source.author_name or "Test Author",
            author_email=source.author_email or "author@example.com",
            author_date=source.author_date or f"{1700000000 + self._counter} +0000",
            committer_name=source.committer_name or "Test Committer",
            committer_email=source.committer_email or "committer@example.com",
            committer_date=source.committer_date
            or f"{1700000000 + self._counter} +0000",
        )
        self.trees[hexsha] = tree
        return hexsha

    # ------------------------------------------------------------------
    # Graph queries
    # ------------------------------------------------------------------

    def resolve_commit(self, rev: str) -> CommitInfo | None:
        if rev in self.branches:
            return self.commits[self.branches[rev]]
        if rev in self.commits:
            return self.commits[rev]
        matches = [h for h in self.commits if len(rev) >= 4 and h.startswith(rev)]
        return self.commits[matches[0]] if len(matches) == 1 else None

    def list_commits(self, rev: str, depth_limit: int) -> list[CommitInfo]:
        start = self.resolve_commit(rev)
        if start is None or depth_limit < 1:
            return []
        seen = {start.hash: start}
        queue = deque([(start.hash, 1)])
        while queue:
            hexsha, generation = queue.popleft()
            if generation >= depth_limit:
                continue
            for parent in self.commits[hexsha].parents:
                if parent not in seen:
                    seen[parent] = self.commits[parent]
                    queue.append((parent, generation + 1))
        return list(seen.values())

    def ancestors(self, hexsha: str) -> set[str]:
        seen = {hexsha}
        stack = [hexsha]
        while stack:
            for parent in self.commits[stack.pop()].parents:
                if parent not in seen:
                    seen.add(parent)
                    stack.append(parent)
        return seen

    def list_branches(self) -> list[BranchRef]:
        return [
            BranchRef(name=name, commit_hash=hexsha)
            for name, hexsha in sorted(self.branches.items())
        ]

    def branches_containing(self, commit_hash: str) -> list[str]:
        return sorted(
            name
            for name, tip in self.branches.items()
            if commit_hash in self.ancestors(tip)
        )

    def diff(self, commit_hash: str, parent_hash: str | None) -> list[DiffEntry]:
        new = self.trees[commit_hash]
        old = self.trees[parent_hash] if parent_hash else {}
        added = sorted(p for p in new if p not in old)
        deleted = sorted(p for p in old if p not in new)
        entries: list[DiffEntry] = []
        for path in added:
            source = next((d for d in deleted if old[d] == new[path]), None)
            if source is not None:
                deleted.remove(source)
                entries.append(
                    DiffEntry(
                        change_type=ChangeType.RENAME, old_path=source, new_path=path
                    )
                )
            else:
                entries.append(DiffEntry(change_type=ChangeType.ADD, new_path=path))
        for path in deleted:
            entries.append(DiffEntry(change_type=ChangeType.DELETE, old_path=path))
        for path in sorted(p for p in new if p in old and new[p] != old[p]):
            entries.append(
                DiffEntry(change_type=ChangeType.MODIFY, old_path=path, new_path=path)
            )
        return entries

    def read_file(self, commit_hash: str, path: str) -> FileBlob | None:
        entry = self.trees[commit_hash].get(path)
        if entry is None:
            return None
        return FileBlob(path=path, data=entry[0], executable=entry[1])

    # ------------------------------------------------------------------
    # Working tree and branches
    # ------------------------------------------------------------------

    def checkout_branch(self, name: str, start_point: str | None = None) -> None:
        self.calls.append(("checkout_branch", name, start_point))
        if start_point is not None:
            self.branches[name] = start_point
        elif name not in self.branches and self.head in self.branches:
            self.branches[name] = self.branches[self.head]
        self.head = name
        self.merge_head = None
        if name in self.branches:
            self._materialise(self.trees[self.branches[name]])

    def discard_changes(self) -> None:
        self.calls.append(("discard_changes",))
        self.merge_head = None
        tip = self.branches.get(self.head) if self.head else None
        self._materialise(self.trees[tip] if tip else {})

    def create_branch(self, name: str, commit_hash: str) -> None:
        self.calls.append(("create_branch", name, commit_hash))
        self.branches[name] = commit_hash
        if self.head == name:
            self._materialise(self.trees[commit_hash])

    def delete_branch(self, name: str) -> None:
        self.calls.append(("delete_branch", name))
        if name == self.head:
            raise BackendError("branch -D", name, "branch is checked out")
        del self.branches[name]

    def branch_exists(self, name: str) -> bool:
        return name in self.branches

    def commit(self, message: str, source: CommitInfo) -> str | None:
        tree = self._read_worktree()
        parent = self.branches.get(self.head) if self.head else None
        parent_tree = self.trees[parent] if parent else {}
        if self.merge_head is None and tree == parent_tree:
            return None
        parents = tuple(h for h in (parent, self.merge_head) if h is not None)
        hexsha = self._store(message, parents, tree, source)
        self.branches[self.head] = hexsha
        self.merge_head = None
        return hexsha

    def merge(self, branch: str) -> list[str]:
        self.calls.append(("merge", branch))
        ours = self.branches[self.head]
        theirs = self.branches[branch]
        if theirs in self.ancestors(ours):
            return []

        base = self._merge_base(ours, theirs)
        base_tree = self.trees[base] if base else {}
        our_tree, their_tree = self.trees[ours], self.trees[theirs]
        result: Tree = {}
        conflicts: list[str] = []
        for path in sorted(set(base_tree) | set(our_tree) | set(their_tree)):
            b, o, t = base_tree.get(path), our_tree.get(path), their_tree.get(path)
            if o == t:
                merged = o
            elif o == b:
                merged = t
            elif t == b:
                merged = o
            else:
                conflicts.append(path)
                merged = (b"<<<<<<< conflict\n", False)
            if merged is not None:
                result[path] = merged
        self._materialise(result)
        self.merge_head = theirs
        return conflicts

    def push_all(self) -> None:
        self.pushes += 1

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _merge_base(self, ours: str, theirs: str) -> str | None:
        their_ancestors = self.ancestors(theirs)
        seen = {ours}
        queue = deque([ours])
        while queue:
            current = queue.popleft()
            if current in their_ancestors:
                return current
            for parent in self.commits[current].parents:
                if parent not in seen:
                    seen.add(parent)
                    queue.append(parent)
        return None

    def _materialise(self, tree: Tree) -> None:
        for child in self._root.iterdir():
            if child.is_dir():
                shutil.rmtree(child)
            else:
                child.unlink()
        for path, (data, executable) in tree.items():
            write_file(self._root.joinpath(*path.split("/")), data, executable)

    def _read_worktree(self) -> Tree:
        tree: Tree = {}
        for file in self._root.rglob("*"):
            if file.is_file():
                rel = file.relative_to(self._root).as_posix()
                tree[rel] = (file.read_bytes(), bool(file.stat().st_mode & stat.S_IXUSR))
        return tree


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def standard_repo(tmp_path):
    return FakeRepository(tmp_path / "standard", name="standard")


@pytest.fixture
def mirror_repo(tmp_path):
    return FakeRepository(tmp_path / "mirror", name="mirror")


@pytest.fixture
def make_settings(tmp_path):
    """Factory fixture for ``MirrorSettings`` pointing at the fake repos."""

    def _make(**overrides) -> MirrorSettings:
        defaults = {
            "standard_path": str(tmp_path / "standard"),
            "mirror_path": str(tmp_path / "mirror"),
            "component": "core",
            "folders": ["common"],
            "files": ["build.gradle"],
        }
        defaults.update(overrides)
        return MirrorSettings(**defaults)

    return _make
