"""GitPython implementation of ``RepositoryBackend``.

Every git failure is re-raised as ``BackendError`` naming the operation and
the ref involved, so a failed run reports which commit or branch broke it.
Plumbing commands (``diff-tree``, ``for-each-ref``) are used with ``-z`` or
explicit formats so paths and ref names never need unquoting.
"""

from __future__ import annotations

import logging
from collections import deque
from pathlib import Path

from git import Repo
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from history_mirror.backend.base import (
    BranchRef,
    ChangeType,
    CommitInfo,
    DiffEntry,
    FileBlob,
)
from history_mirror.errors import BackendError

logger = logging.getLogger(__name__)

_STATUS_MAP: dict[str, ChangeType] = {
    "A": ChangeType.ADD,
    "C": ChangeType.COPY,
    "D": ChangeType.DELETE,
    "M": ChangeType.MODIFY,
    "R": ChangeType.RENAME,
    "T": ChangeType.MODIFY,
}

_HEADS = "refs/heads/"


def _raw_date(epoch: int, tz_offset: int) -> str:
    """Format a date the way git stores it (``"<unix> <+hhmm>"``).

    GitPython reports offsets in seconds *west* of UTC.
    """
    east = -tz_offset
    sign = "+" if east >= 0 else "-"
    hours, minutes = divmod(abs(east) // 60, 60)
    return f"{epoch} {sign}{hours:02d}{minutes:02d}"


class GitRepository:
    """A working-tree repository driven through GitPython.

    Args:
        path: Root of the repository's working tree.  Subdirectories are
            rejected so a path nested in another checkout never opens it.
        remote: Remote used for pushing and, optionally, for branches.
        include_remote_branches: Also report ``refs/remotes/<remote>/*`` as
            branches (remote prefix stripped).  Useful for CI checkouts of
            the standard repository that carry no local branches.
    """

    def __init__(
        self,
        path: Path | str,
        remote: str = "origin",
        include_remote_branches: bool = False,
    ) -> None:
        try:
            self._repo = Repo(str(path), search_parent_directories=False)
        except (InvalidGitRepositoryError, NoSuchPathError) as exc:
            raise BackendError("open", str(path), "not a git repository") from exc
        if self._repo.working_tree_dir is None:
            raise BackendError("open", str(path), "bare repositories are not supported")
        self._remote = remote
        self._include_remote_branches = include_remote_branches

    @property
    def root(self) -> Path:
        return Path(self._repo.working_tree_dir)  # type: ignore[arg-type]

    def __repr__(self) -> str:
        return f"GitRepository({str(self.root)!r})"

    # ------------------------------------------------------------------
    # Commits
    # ------------------------------------------------------------------

    def resolve_commit(self, rev: str) -> CommitInfo | None:
        try:
            hexsha = self._repo.git.rev_parse(
                "--verify", "--quiet", f"{rev}^{{commit}}"
            )
        except GitCommandError:
            return None
        return self._to_commit_info(self._repo.commit(hexsha))

    def list_commits(self, rev: str, depth_limit: int) -> list[CommitInfo]:
        start = self.resolve_commit(rev)
        if start is None or depth_limit < 1:
            return []

        seen: dict[str, CommitInfo] = {start.hash: start}
        queue: deque[tuple[str, int]] = deque([(start.hash, 1)])
        while queue:
            hexsha, generation = queue.popleft()
            if generation >= depth_limit:
                continue
            for parent in seen[hexsha].parents:
                if parent in seen:
                    continue
                seen[parent] = self._to_commit_info(self._repo.commit(parent))
                queue.append((parent, generation + 1))
        return list(seen.values())

    def diff(
        self, commit_hash: str, parent_hash: str | None
    ) -> list[DiffEntry]:
        args = ["-r", "-z", "--name-status", "-M", "-C", "--no-commit-id"]
        if parent_hash is None:
            args += ["--root", commit_hash]
        else:
            args += [parent_hash, commit_hash]
        output = self._run("diff-tree", commit_hash, self._repo.git.diff_tree, *args)
        return self._parse_name_status(output)

    def read_file(self, commit_hash: str, path: str) -> FileBlob | None:
        try:
            tree = self._repo.commit(commit_hash).tree
        except ValueError as exc:
            raise BackendError("read", commit_hash, str(exc)) from exc
        try:
            obj = tree / path
        except KeyError:
            return None
        if obj.type != "blob":
            return None
        return FileBlob(
            path=path,
            data=obj.data_stream.read(),
            executable=bool(obj.mode & 0o111),
        )

    def commit(self, message: str, source: CommitInfo) -> str | None:
        self._run("add", None, self._repo.git.add, "-A")

        merging = (Path(self._repo.git_dir) / "MERGE_HEAD").exists()
        if not merging and not self._has_staged_changes():
            logger.debug("Nothing to commit for %s", source.short_hash)
            return None

        env: dict[str, str] = {}
        for prefix, name, email, date in (
            ("AUTHOR", source.author_name, source.author_email, source.author_date),
            (
                "COMMITTER",
                source.committer_name,
                source.committer_email,
                source.committer_date,
            ),
        ):
            if name:
                env[f"GIT_{prefix}_NAME"] = name
            if email:
                env[f"GIT_{prefix}_EMAIL"] = email
            if date:
                env[f"GIT_{prefix}_DATE"] = date

        self._run(
            "commit",
            source.hash,
            self._repo.git.commit,
            "--no-verify",
            "--cleanup=whitespace",
            "-m",
            message,
            env=env,
        )
        return self._repo.head.commit.hexsha

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    def list_branches(self) -> list[BranchRef]:
        output = self._run(
            "for-each-ref",
            None,
            self._repo.git.for_each_ref,
            "--format=%(refname) %(objectname)",
            *self._branch_namespaces(),
        )
        branches: dict[str, BranchRef] = {}
        for line in output.splitlines():
            refname, _, objectname = line.partition(" ")
            name = self._branch_name(refname)
            if name is not None and name not in branches:
                branches[name] = BranchRef(name=name, commit_hash=objectname)
        return sorted(branches.values(), key=lambda b: b.name)

    def branches_containing(self, commit_hash: str) -> list[str]:
        output = self._run(
            "for-each-ref",
            commit_hash,
            self._repo.git.for_each_ref,
            "--format=%(refname)",
            "--contains",
            commit_hash,
            *self._branch_namespaces(),
        )
        names = {
            name
            for name in map(self._branch_name, output.splitlines())
            if name is not None
        }
        return sorted(names)

    def branch_exists(self, name: str) -> bool:
        try:
            self._repo.git.show_ref("--verify", "--quiet", f"{_HEADS}{name}")
        except GitCommandError:
            return False
        return True

    def checkout_branch(
        self, name: str, start_point: str | None = None
    ) -> None:
        if start_point is not None:
            self._run("checkout", name, self._repo.git.checkout, "-f", "-B", name, start_point)
        elif self.branch_exists(name):
            self._run("checkout", name, self._repo.git.checkout, "-f", name)
        else:
            self._run("checkout", name, self._repo.git.checkout, "-b", name)

    def discard_changes(self) -> None:
        if self.resolve_commit("HEAD") is not None:
            self._run("reset", "HEAD", self._repo.git.reset, "--hard", "HEAD")
        else:
            # unborn branch: nothing to reset to, so empty the index
            self._run("read-tree", None, self._repo.git.read_tree, "--empty")
        self._run("clean", None, self._repo.git.clean, "-f", "-d")

    def create_branch(self, name: str, commit_hash: str) -> None:
        if self._current_branch() == name:
            # git refuses to force-move the checked-out branch
            self.checkout_branch(name, commit_hash)
            return
        self._run("branch", name, self._repo.git.branch, "-f", name, commit_hash)

    def delete_branch(self, name: str) -> None:
        self._run("branch -D", name, self._repo.git.branch, "-D", name)

    def merge(self, branch: str) -> list[str]:
        try:
            self._repo.git.merge("--no-ff", "--no-commit", branch)
        except GitCommandError as exc:
            conflicts = self._conflicted_paths()
            if not conflicts:
                raise BackendError("merge", branch, str(exc).strip()) from exc
            return conflicts
        return []

    def push_all(self) -> None:
        self._run("push", self._remote, self._repo.git.push, self._remote, "--all")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _run(self, operation: str, ref: str | None, func, *args, **kwargs) -> str:
        """Invoke a GitPython command, translating its failure."""
        try:
            return func(*args, **kwargs)
        except GitCommandError as exc:
            detail = (exc.stderr or str(exc)).strip()
            raise BackendError(operation, ref, detail) from exc

    def _branch_namespaces(self) -> list[str]:
        namespaces = ["refs/heads"]
        if self._include_remote_branches:
            namespaces.append(f"refs/remotes/{self._remote}")
        return namespaces

    def _branch_name(self, refname: str) -> str | None:
        if refname.startswith(_HEADS):
            return refname[len(_HEADS):]
        remote_prefix = f"refs/remotes/{self._remote}/"
        if refname.startswith(remote_prefix):
            name = refname[len(remote_prefix):]
            return None if name == "HEAD" else name
        return None

    def _current_branch(self) -> str | None:
        if self._repo.head.is_detached:
            return None
        return self._repo.active_branch.name

    def _has_staged_changes(self) -> bool:
        try:
            self._repo.git.diff("--cached", "--quiet")
        except GitCommandError:
            return True
        return False

    def _conflicted_paths(self) -> list[str]:
        output = self._repo.git.diff("--name-only", "--diff-filter=U", "-z")
        return sorted({p for p in output.split("\0") if p})

    @staticmethod
    def _parse_name_status(output: str) -> list[DiffEntry]:
        """Parse ``diff-tree -z --name-status`` output."""
        tokens = [t for t in output.split("\0") if t]
        entries: list[DiffEntry] = []
        i = 0
        while i < len(tokens):
            status = tokens[i][0]
            change_type = _STATUS_MAP.get(status)
            if status in ("R", "C"):
                old_path, new_path = tokens[i + 1], tokens[i + 2]
                i += 3
            else:
                old_path = new_path = tokens[i + 1]
                i += 2
            if change_type is None:
                logger.warning("Ignoring diff status %r for %s", status, new_path)
                continue
            if change_type == ChangeType.ADD:
                old_path = None
            elif change_type == ChangeType.DELETE:
                new_path = None
            entries.append(
                DiffEntry(
                    change_type=change_type,
                    old_path=old_path,
                    new_path=new_path,
                )
            )
        return entries

    @staticmethod
    def _to_commit_info(commit) -> CommitInfo:
        message = commit.message
        if isinstance(message, bytes):
            message = message.decode("utf-8", errors="replace")
        return CommitInfo(
            hash=commit.hexsha,
            parents=tuple(p.hexsha for p in commit.parents),
            message=message,
            author_name=commit.author.name or "",
            author_email=commit.author.email or "",
            author_date=_raw_date(commit.authored_date, commit.author_tz_offset),
            committer_name=commit.committer.name or "",
            committer_email=commit.committer.email or "",
            committer_date=_raw_date(
                commit.committed_date, commit.committer_tz_offset
            ),
        )
