"""Commit graph collection and mirror state resolution.

``collect_ancestry`` turns the backend's depth-bounded commit listing into
a deterministic, parents-first sequence the plan builder can consume in a
single forward pass.

``resolve_mirrored_set`` scans the mirror's branches for marker-carrying
commits and reports which standard commits are already represented.  This
is the resumability checkpoint.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping

from history_mirror.backend.base import CommitInfo, RepositoryBackend
from history_mirror.errors import CommitNotFoundError
from history_mirror.replay.markers import parse_marker
from history_mirror.replay.models import MirroredCommit

logger = logging.getLogger(__name__)


def collect_ancestry(
    repo: RepositoryBackend, from_hash: str, depth_limit: int
) -> list[CommitInfo]:
    """Collect the ancestry of *from_hash*, oldest first.

    Args:
        repo: Repository to walk.
        from_hash: Commit to start from (generation 1).
        depth_limit: Maximum number of generations to collect.

    Returns:
        Commits in topological order: every collected parent precedes its
        children.  Primary parents are explored first, so a first-parent
        line is emitted before the side lines merged into it.

    Raises:
        CommitNotFoundError: If *from_hash* does not resolve in *repo*.
    """
    start = repo.resolve_commit(from_hash)
    if start is None:
        raise CommitNotFoundError(from_hash, str(repo.root))

    commits = {c.hash: c for c in repo.list_commits(start.hash, depth_limit)}
    commits.setdefault(start.hash, start)

    ordered = _topological_order(start.hash, commits)
    logger.debug(
        "Collected %d commits from %s (depth limit %d)",
        len(ordered),
        start.short_hash,
        depth_limit,
    )
    return ordered


def _topological_order(
    start: str, commits: Mapping[str, CommitInfo]
) -> list[CommitInfo]:
    """Iterative post-order DFS over parent links restricted to *commits*."""
    ordered: list[CommitInfo] = []
    emitted: set[str] = set()
    visiting: set[str] = {start}
    stack: list[tuple[str, Iterator[str]]] = [
        (start, iter(commits[start].parents))
    ]
    while stack:
        hexsha, parents = stack[-1]
        for parent in parents:
            if parent in commits and parent not in emitted and parent not in visiting:
                visiting.add(parent)
                stack.append((parent, iter(commits[parent].parents)))
                break
        else:
            stack.pop()
            visiting.discard(hexsha)
            emitted.add(hexsha)
            ordered.append(commits[hexsha])
    return ordered


class MirroredSet(Mapping[str, MirroredCommit]):
    """Standard hashes already represented in the mirror.

    Behaves as a read-only mapping from standard hash to the
    ``MirroredCommit`` found for it, so ``hash in mirrored`` is the
    "already mirrored" test.
    """

    def __init__(self, entries: Mapping[str, MirroredCommit] | None = None) -> None:
        self._entries: dict[str, MirroredCommit] = dict(entries or {})

    def __getitem__(self, standard_hash: str) -> MirroredCommit:
        return self._entries[standard_hash]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"MirroredSet({len(self._entries)} commits)"


def resolve_mirrored_set(
    mirror_repo: RepositoryBackend, depth_limit: int
) -> MirroredSet:
    """Find every standard commit already replayed into *mirror_repo*.

    Each mirror branch is walked up to *depth_limit* generations.  Branches
    are visited by name, and the first branch reaching a given standard
    hash is the one recorded.  Commits without a well-formed marker are
    ignored.
    """
    entries: dict[str, MirroredCommit] = {}
    for branch in sorted(mirror_repo.list_branches(), key=lambda b: b.name):
        for commit in mirror_repo.list_commits(branch.commit_hash, depth_limit):
            standard_hash = parse_marker(commit.message)
            if standard_hash is None or standard_hash in entries:
                continue
            entries[standard_hash] = MirroredCommit(
                standard_hash=standard_hash,
                mirror_hash=commit.hash,
                branch=branch.name,
            )

    logger.info(
        "Mirror already contains %d standard commit(s)", len(entries)
    )
    return MirroredSet(entries)
