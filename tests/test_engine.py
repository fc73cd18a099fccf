"""Tests for the mirroring engine, end to end on in-memory repositories."""

from __future__ import annotations

import pytest

from history_mirror.errors import BackendError, CommitNotFoundError, MergeConflictError
from history_mirror.replay.engine import MirrorEngine
from history_mirror.replay.markers import parse_marker
from history_mirror.replay.models import ReplayKind, ReplayOutcome
from history_mirror.replay.planner import SCRATCH_PREFIX

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _engine(standard_repo, mirror_repo, make_settings, **overrides) -> MirrorEngine:
    return MirrorEngine(standard_repo, mirror_repo, make_settings(**overrides))


def _outcomes(report) -> list[ReplayOutcome]:
    return [u.outcome for u in report.units]


def _abc(standard_repo) -> dict[str, str]:
    """A adds core/ and other/ files, B touches only other/, C touches core/."""
    a = standard_repo.make_commit(
        "A: initial", {"core/a.txt": "a1", "other/x.txt": "x1"}, branch="main"
    )
    b = standard_repo.make_commit("B: other only", {"other/x.txt": "x2"}, (a,), branch="main")
    c = standard_repo.make_commit("C: core change", {"core/a.txt": "a2"}, (b,), branch="main")
    return {"A": a, "B": b, "C": c}


def _conflicting_merge(standard_repo) -> dict[str, str]:
    """main and feature both edit core/f.txt; M resolves it by hand."""
    a = standard_repo.make_commit("A", {"core/f.txt": "base\n"}, branch="main")
    b = standard_repo.make_commit("B", {"core/f.txt": "feature\n"}, (a,), branch="feature")
    c = standard_repo.make_commit("C", {"core/f.txt": "main\n"}, (a,), branch="main")
    m = standard_repo.make_commit(
        "M: merge feature", {"core/f.txt": "resolved\n"}, (c, b), branch="main"
    )
    return {"A": a, "B": b, "C": c, "M": m}


# ---------------------------------------------------------------------------
# Linear history
# ---------------------------------------------------------------------------


class TestLinearHistory:
    def test_abc_scenario(self, standard_repo, mirror_repo, make_settings) -> None:
        h = _abc(standard_repo)
        report = _engine(standard_repo, mirror_repo, make_settings).mirror(h["C"])

        assert _outcomes(report) == [
            ReplayOutcome.COMMITTED,
            ReplayOutcome.SKIPPED_EMPTY,
            ReplayOutcome.COMMITTED,
        ]
        history = mirror_repo.history("main")
        assert len(history) == 2
        assert [parse_marker(c.message) for c in history] == [h["C"], h["A"]]
        assert mirror_repo.tree_of("main") == {"core/a.txt": b"a2"}
        assert report.branches == ["main"]
        assert report.pushed
        assert mirror_repo.pushes == 1

    def test_only_the_in_scope_commit_is_mirrored(
        self, standard_repo, mirror_repo, make_settings
    ) -> None:
        a = standard_repo.make_commit("A", {"README": "r"}, branch="main")
        b = standard_repo.make_commit("B", {"lib/x.txt": "x"}, (a,), branch="main")
        c = standard_repo.make_commit("C", {"docs/readme.md": "d"}, (b,), branch="main")

        report = _engine(
            standard_repo,
            mirror_repo,
            make_settings,
            component=None,
            folders=["lib"],
            files=[],
        ).mirror(c)

        assert report.new_commit_count == 1
        [mirrored] = mirror_repo.history("main")
        assert parse_marker(mirrored.message) == b
        assert report.units[-1].outcome == ReplayOutcome.SKIPPED_EMPTY

    def test_skipped_unit_inherits_parent_mirror_hash(
        self, standard_repo, mirror_repo, make_settings
    ) -> None:
        h = _abc(standard_repo)
        report = _engine(standard_repo, mirror_repo, make_settings).mirror(h["C"])
        assert report.units[1].mirror_hash == report.units[0].mirror_hash

    def test_metadata_is_preserved(self, standard_repo, mirror_repo, make_settings) -> None:
        h = _abc(standard_repo)
        _engine(standard_repo, mirror_repo, make_settings).mirror(h["C"])

        source = standard_repo.commits[h["C"]]
        replayed = mirror_repo.history("main")[0]
        assert replayed.author_name == source.author_name
        assert replayed.author_date == source.author_date
        assert replayed.committer_date == source.committer_date
        assert replayed.message.startswith("C: core change")

    def test_root_may_be_abbreviated(self, standard_repo, mirror_repo, make_settings) -> None:
        h = _abc(standard_repo)
        report = _engine(standard_repo, mirror_repo, make_settings).mirror(h["C"][:8])
        assert report.root_hash == h["C"]

    def test_unknown_root_raises(self, standard_repo, mirror_repo, make_settings) -> None:
        _abc(standard_repo)
        with pytest.raises(CommitNotFoundError):
            _engine(standard_repo, mirror_repo, make_settings).mirror("e" * 40)

    def test_same_working_tree_rejected(self, standard_repo, make_settings) -> None:
        with pytest.raises(ValueError, match="same working tree"):
            MirrorEngine(standard_repo, standard_repo, make_settings())


# ---------------------------------------------------------------------------
# Resumability
# ---------------------------------------------------------------------------


class TestResume:
    def test_second_run_is_a_no_op(self, standard_repo, mirror_repo, make_settings) -> None:
        h = _abc(standard_repo)
        engine = _engine(standard_repo, mirror_repo, make_settings)
        engine.mirror(h["C"])
        commits_before = dict(mirror_repo.commits)
        branches_before = dict(mirror_repo.branches)

        report = engine.mirror(h["C"])

        assert [u.kind for u in report.units] == [ReplayKind.RESUME_POINT]
        assert _outcomes(report) == [ReplayOutcome.RESUMED]
        assert report.new_commit_count == 0
        assert mirror_repo.commits == commits_before
        assert mirror_repo.branches == branches_before

    def test_rerun_from_non_tip_root_leaves_no_scratch_branch(
        self, standard_repo, mirror_repo, make_settings
    ) -> None:
        h = _abc(standard_repo)
        engine = _engine(standard_repo, mirror_repo, make_settings)
        engine.mirror(h["B"])
        main_tip = mirror_repo.branches["main"]

        report = engine.mirror(h["B"])

        assert _outcomes(report) == [ReplayOutcome.RESUMED, ReplayOutcome.SKIPPED_EMPTY]
        assert sorted(mirror_repo.branches) == ["main"]
        assert mirror_repo.branches["main"] == main_tip
        assert mirror_repo.head == "main"

    def test_new_commits_are_appended(self, standard_repo, mirror_repo, make_settings) -> None:
        h = _abc(standard_repo)
        engine = _engine(standard_repo, mirror_repo, make_settings)
        engine.mirror(h["C"])
        d = standard_repo.make_commit("D", {"core/d.txt": "d"}, (h["C"],), branch="main")

        report = engine.mirror(d)

        assert report.resume_hash == h["C"]
        assert _outcomes(report) == [ReplayOutcome.RESUMED, ReplayOutcome.COMMITTED]
        history = mirror_repo.history("main")
        assert [parse_marker(c.message) for c in history] == [d, h["C"], h["A"]]
        assert mirror_repo.tree_of("main") == {"core/a.txt": b"a2", "core/d.txt": b"d"}

    def test_failed_run_is_resumed_without_push(
        self, standard_repo, mirror_repo, make_settings, monkeypatch
    ) -> None:
        h = _abc(standard_repo)
        engine = _engine(standard_repo, mirror_repo, make_settings)
        real_commit = mirror_repo.commit

        def commit(message, source):
            if source.hash == h["C"]:
                raise BackendError("commit", source.hash, "disk full")
            return real_commit(message, source)

        monkeypatch.setattr(mirror_repo, "commit", commit)
        with pytest.raises(BackendError):
            engine.mirror(h["C"])
        assert mirror_repo.pushes == 0
        monkeypatch.undo()

        report = engine.mirror(h["C"])

        assert report.resume_hash == h["A"]
        assert _outcomes(report) == [
            ReplayOutcome.RESUMED,
            ReplayOutcome.SKIPPED_EMPTY,
            ReplayOutcome.COMMITTED,
        ]
        assert [parse_marker(c.message) for c in mirror_repo.history("main")] == [
            h["C"],
            h["A"],
        ]
        assert ("discard_changes",) in mirror_repo.calls
        assert mirror_repo.pushes == 1

    def test_dry_run_leaves_mirror_untouched(
        self, standard_repo, mirror_repo, make_settings
    ) -> None:
        h = _abc(standard_repo)
        report = _engine(standard_repo, mirror_repo, make_settings).mirror(
            h["C"], dry_run=True
        )

        assert report.dry_run
        assert len(report.pending) == 3
        assert mirror_repo.commits == {}
        assert mirror_repo.pushes == 0


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------


class TestFiltering:
    def test_no_empty_commits(self, standard_repo, mirror_repo, make_settings) -> None:
        a = standard_repo.make_commit("A", {"core/a.txt": "a"}, branch="main")
        b = standard_repo.make_commit("B", {"docs/readme.md": "r"}, (a,), branch="main")
        c = standard_repo.make_commit("C", {"docs/readme.md": "r2"}, (b,), branch="main")

        report = _engine(standard_repo, mirror_repo, make_settings).mirror(c)

        assert len(mirror_repo.commits) == 1
        assert report.new_commit_count == 1
        assert len(report.skipped) == 2

    def test_only_allow_listed_paths_reach_the_mirror(
        self, standard_repo, mirror_repo, make_settings
    ) -> None:
        a = standard_repo.make_commit(
            "A",
            {
                "core/src/main.kt": "m",
                "common/util.kt": "u",
                "build.gradle": "g",
                "app/build.gradle": "no",
                "corelib/x.kt": "no",
            },
            branch="main",
        )

        _engine(standard_repo, mirror_repo, make_settings).mirror(a)

        assert set(mirror_repo.tree_of("main")) == {
            "core/src/main.kt",
            "common/util.kt",
            "build.gradle",
        }

    def test_rename_out_of_scope_deletes_in_mirror(
        self, standard_repo, mirror_repo, make_settings
    ) -> None:
        a = standard_repo.make_commit(
            "A", {"core/a.txt": "data", "core/b.txt": "b"}, branch="main"
        )
        b = standard_repo.make_commit(
            "B: move out", {"core/a.txt": None, "attic/a.txt": "data"}, (a,), branch="main"
        )

        report = _engine(standard_repo, mirror_repo, make_settings).mirror(b)

        assert _outcomes(report) == [ReplayOutcome.COMMITTED, ReplayOutcome.COMMITTED]
        assert mirror_repo.tree_of("main") == {"core/b.txt": b"b"}


# ---------------------------------------------------------------------------
# Merges
# ---------------------------------------------------------------------------


class TestMerges:
    def test_conflicting_merge_takes_standard_content(
        self, standard_repo, mirror_repo, make_settings
    ) -> None:
        h = _conflicting_merge(standard_repo)
        report = _engine(standard_repo, mirror_repo, make_settings).mirror(h["M"])

        merge_unit = report.units[-1]
        assert merge_unit.kind == ReplayKind.MERGE
        assert merge_unit.outcome == ReplayOutcome.MERGED
        assert mirror_repo.tree_of("main") == {"core/f.txt": b"resolved\n"}
        merge_commit = mirror_repo.commits[mirror_repo.branches["main"]]
        assert len(merge_commit.parents) == 2
        assert parse_marker(merge_commit.message) == h["M"]

    def test_replay_branches_are_pruned(self, standard_repo, mirror_repo, make_settings) -> None:
        h = _conflicting_merge(standard_repo)
        report = _engine(standard_repo, mirror_repo, make_settings).mirror(h["M"])

        assert report.branches == ["main"]
        assert report.deleted_branches == ["feature"]
        assert set(mirror_repo.branches) == {"main"}
        assert mirror_repo.head == "main"

    def test_fail_strategy_aborts(self, standard_repo, mirror_repo, make_settings) -> None:
        h = _conflicting_merge(standard_repo)
        engine = _engine(
            standard_repo, mirror_repo, make_settings, conflict_strategy="fail"
        )
        with pytest.raises(MergeConflictError, match="core/f.txt"):
            engine.mirror(h["M"])
        assert mirror_repo.pushes == 0

    def test_clean_merge(self, standard_repo, mirror_repo, make_settings) -> None:
        a = standard_repo.make_commit("A", {"core/a.txt": "a"}, branch="main")
        b = standard_repo.make_commit("B", {"core/b.txt": "b"}, (a,))
        c = standard_repo.make_commit("C", {"core/c.txt": "c"}, (a,))
        m = standard_repo.make_commit("M", {"core/b.txt": "b"}, (c, b), branch="main")

        report = _engine(standard_repo, mirror_repo, make_settings).mirror(m)

        assert report.units[-1].outcome == ReplayOutcome.MERGED
        assert mirror_repo.tree_of("main") == {
            "core/a.txt": b"a",
            "core/b.txt": b"b",
            "core/c.txt": b"c",
        }
        assert not any(n.startswith(SCRATCH_PREFIX) for n in mirror_repo.branches)

    def test_merge_with_unmirrored_parent_is_skipped(
        self, standard_repo, mirror_repo, make_settings
    ) -> None:
        a = standard_repo.make_commit("A", {"docs/a.md": "a"}, branch="main")
        b = standard_repo.make_commit("B", {"docs/b.md": "b"}, (a,), branch="feature")
        c = standard_repo.make_commit("C", {"core/c.txt": "c"}, (a,), branch="main")
        m = standard_repo.make_commit("M", {"docs/b.md": "b"}, (c, b), branch="main")

        report = _engine(standard_repo, mirror_repo, make_settings).mirror(m)

        by_hash = {u.standard_hash: u for u in report.units}
        assert by_hash[m].outcome == ReplayOutcome.SKIPPED_MISSING_BRANCH
        assert by_hash[m].mirror_hash == by_hash[c].mirror_hash
        assert len(mirror_repo.commits) == 1
        assert report.branches == ["main"]

    def test_merge_is_idempotent(self, standard_repo, mirror_repo, make_settings) -> None:
        h = _conflicting_merge(standard_repo)
        engine = _engine(standard_repo, mirror_repo, make_settings)
        engine.mirror(h["M"])
        count = len(mirror_repo.commits)

        report = engine.mirror(h["M"])

        assert report.new_commit_count == 0
        assert len(mirror_repo.commits) == count


class TestPush:
    def test_push_disabled(self, standard_repo, mirror_repo, make_settings) -> None:
        h = _abc(standard_repo)
        report = _engine(standard_repo, mirror_repo, make_settings, push=False).mirror(
            h["C"]
        )
        assert not report.pushed
        assert mirror_repo.pushes == 0
