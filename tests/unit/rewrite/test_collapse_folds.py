"""Tests for the collapse fold operations on a real repository."""

import pytest

from histfmt.core.errors import FoldError, GitError
from histfmt.git.repo import Git
from histfmt.rewrite.collapse import CollapsePhase
from histfmt.rewrite.run_state import (
    CommitKind,
    CommitRecord,
    RunState,
    RunStore,
)

ORIGINAL = CommitRecord(kind=CommitKind.ORIGINAL, index=2)
FORMAT = CommitRecord(kind=CommitKind.FORMAT, index=1)
REVERT = CommitRecord(kind=CommitKind.REVERT, index=1)
BASE = CommitRecord(kind=CommitKind.BASE_REVERT, index=0)


@pytest.fixture
def phase(repo, test_config):
    git = Git(repo.path, test_config.commands["git"])
    return CollapsePhase(git, RunStore(git.git_dir))


def test_predicates_without_match_do_nothing():
    """A non-matching fold never touches git."""
    phase = CollapsePhase(git=None, store=None)

    assert not phase.fold_down(FORMAT, ORIGINAL)
    assert not phase.fold_down(ORIGINAL, FORMAT)
    assert not phase.fold_down(ORIGINAL, BASE)
    assert not phase.fold_down(ORIGINAL, None)
    assert not phase.fold_up(ORIGINAL)
    assert not phase.fold_up(REVERT)


def test_fold_down_absorbs_revert(repo, phase):
    root = repo.commit("root", {"a.txt": "a\n"})
    repo.commit("formatted", {"a.txt": "A\n"})
    repo.commit("revert", {"a.txt": "a\n"})
    repo.commit("add b\n\nbody text", {"b.txt": "b\n"})
    tree = repo.git("rev-parse", "HEAD^{tree}")

    assert phase.fold_down(ORIGINAL, REVERT)

    assert repo.log(root) == ["formatted", "add b"]
    assert repo.git("rev-parse", "HEAD^{tree}") == tree
    assert "body text" in repo.git("log", "-1", "--format=%B")


def test_fold_up_absorbs_format(repo, phase):
    root = repo.commit("root", {"a.txt": "a\n"})
    repo.commit("add b", {"b.txt": "b\n"})
    repo.commit("formatting", {"a.txt": "A\n", "b.txt": "B\n"})
    tree = repo.git("rev-parse", "HEAD^{tree}")

    assert phase.fold_up(FORMAT)

    assert repo.log(root) == ["add b"]
    assert repo.git("rev-parse", "HEAD^{tree}") == tree


def test_fold_up_keeps_empty_result(repo, phase):
    root = repo.commit("root", {"a.txt": "A\n"})
    repo.commit("nothing")
    repo.commit("formatting")

    assert phase.fold_up(FORMAT)

    assert repo.log(root) == ["nothing"]


def test_failed_fold_raises(repo, phase):
    """Folding down needs two commits below HEAD."""
    repo.commit("only", {"a.txt": "a\n"})

    with pytest.raises(FoldError):
        phase.fold_down(ORIGINAL, REVERT)


def interleaved(repo, store):
    """Record B, O1, F1, R1, O2, F2 as a run and leave HEAD on F2."""
    root = repo.commit("root", {"a.txt": "a\n"})
    o1 = repo.commit("O1", {"b.txt": "b\n"})
    f1 = repo.commit("F1", {"b.txt": "B\n"})
    r1 = repo.commit("R1", {"b.txt": "b\n"})
    o2 = repo.commit("O2", {"c.txt": "c\n"})
    f2 = repo.commit("F2", {"c.txt": "C\n"})

    run = RunState(
        marker="histfmt-1-abcdef012345",
        common_root=root,
        branch_tip=o2,
        format_command="true",
        originals=[o1, o2],
    )
    run.record(root, CommitKind.BASE_REVERT, 0)
    run.record(o1, CommitKind.ORIGINAL, 1, source=o1)
    run.record(f1, CommitKind.FORMAT, 1)
    run.record(r1, CommitKind.REVERT, 1)
    run.record(o2, CommitKind.ORIGINAL, 2, source=o2)
    run.record(f2, CommitKind.FORMAT, 2)
    store.save(run)
    return root, o2, f2


def test_failed_fold_puts_head_back_and_refolds_once(
    repo, phase, monkeypatch
):
    root, _, f2 = interleaved(repo, phase.store)
    tree = repo.git("rev-parse", "HEAD^{tree}")
    amend = phase.git.commit_amend
    calls = []

    def amend_fails_once():
        calls.append(1)
        if len(calls) == 1:
            raise GitError("git commit --amend", 128, "", "index.lock")
        return amend()

    monkeypatch.setattr(phase.git, "commit_amend", amend_fails_once)

    with pytest.raises(FoldError):
        phase.step(f2)
    assert repo.head() == f2

    phase.step(f2)

    assert repo.log(root) == ["O1", "F1", "R1", "O2"]
    assert repo.git("rev-parse", "HEAD^{tree}") == tree
    assert phase.store.load().folded == [f2]


def test_rescheduled_step_after_interrupted_fold(repo, phase, monkeypatch):
    """A callback killed between reset and commit is retried from the
    recorded HEAD, not from wherever the reset left it."""
    root, o2, f2 = interleaved(repo, phase.store)
    tree = repo.git("rev-parse", "HEAD^{tree}")

    def killed():
        raise GitError("git commit --amend", -1)

    with monkeypatch.context() as m:
        m.setattr(phase.git, "commit_amend", killed)
        m.setattr(phase, "_restore", lambda head: None)
        with pytest.raises(FoldError):
            phase.step(f2)
    assert repo.head() == o2

    phase.step(f2)

    assert repo.log(root) == ["O1", "F1", "R1", "O2"]
    assert repo.git("rev-parse", "HEAD^{tree}") == tree
    assert phase.store.load().fold_heads[f2] == f2


def test_step_records_head_before_folding(repo, phase):
    root, _, f2 = interleaved(repo, phase.store)

    phase.step(f2)
    phase.step(f2)

    assert repo.log(root) == ["O1", "F1", "R1", "O2"]
    run = phase.store.load()
    assert run.fold_heads == {f2: f2}
    assert run.folded == [f2]
