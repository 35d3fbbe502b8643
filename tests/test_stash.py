from __future__ import annotations

import pytest

from cherryup.stash import StashSection, UnstashSection
from cherryup.steps import Decision, ProgressEvents, StashRecord, StepProgress
from fakes import CLEAN, DIRTY, FakeGit, repo


def _pair(git: FakeGit) -> tuple[StashSection, UnstashSection, StashRecord, list[str]]:
    events = ProgressEvents()
    events.open()
    seen: list[str] = []
    events.subscribe(lambda: seen.append("changed"))
    record = StashRecord()
    r = repo("core", git)
    return (
        StashSection(repo=r, record=record, events=events),
        UnstashSection(repo=r, record=record, events=events),
        record,
        seen,
    )


def test_clean_repository_is_not_stashed() -> None:
    git = FakeGit(status=CLEAN)
    stash, unstash, record, _ = _pair(git)

    assert stash.proceed() is True
    assert unstash.proceed() is True

    assert record.decision == Decision.NONE
    assert git.mutations() == []
    assert stash.label == "Stash core (not needed)"
    assert unstash.label == "Restore core (not needed)"


def test_dirty_repository_is_stashed_and_restored_by_sha() -> None:
    git = FakeGit(status=DIRTY)
    stash, unstash, record, seen = _pair(git)

    assert stash.proceed() is True
    assert record.stash_ref == "5ta5h0aaaaaa"
    assert stash.progress == StepProgress.DONE
    assert stash.label == "Stash core (stashed as 5ta5h0)"
    assert seen == ["changed", "changed"]

    assert unstash.proceed() is True

    assert git.mutations() == [
        ("create_stash", True),
        ("drop_stash", 0),
        ("apply_stash", "5ta5h0aaaaaa"),
    ]


def test_stash_runs_only_once() -> None:
    git = FakeGit(status=DIRTY)
    stash, _, _, _ = _pair(git)

    stash.proceed()
    git.working_status = DIRTY
    stash.proceed()

    assert git.mutations() == [("create_stash", True)]


def test_stopping_stash_before_it_ran_decides_no_stash() -> None:
    git = FakeGit(status=DIRTY)
    stash, unstash, record, _ = _pair(git)

    assert stash.stop() is True
    assert stash.progress == StepProgress.STOPPED
    assert record.decision == Decision.NONE
    assert stash.proceed() is True

    assert unstash.stop() is True
    assert unstash.progress == StepProgress.DONE
    assert git.mutations() == []


def test_stopping_a_finished_stash_keeps_it_done() -> None:
    git = FakeGit(status=DIRTY)
    stash, unstash, _, _ = _pair(git)
    stash.proceed()

    assert stash.stop() is True
    assert stash.progress == StepProgress.DONE

    unstash.stop()
    assert ("apply_stash", "5ta5h0aaaaaa") in git.mutations()


def test_restore_drops_the_stash_once_across_retries(monkeypatch: pytest.MonkeyPatch) -> None:
    git = FakeGit(status=DIRTY)
    stash, unstash, _, _ = _pair(git)
    stash.proceed()

    attempts = []

    def failing_apply(stash_ref: str) -> None:
        attempts.append(stash_ref)
        if len(attempts) == 1:
            raise RuntimeError("apply failed")

    monkeypatch.setattr(git, "apply_stash", failing_apply)

    with pytest.raises(RuntimeError, match="apply failed"):
        unstash.proceed()
    assert unstash.progress == StepProgress.PROCESSING

    assert unstash.proceed() is True
    assert [c for c in git.calls if c[0] == "drop_stash"] == [("drop_stash", 0)]
    assert attempts == ["5ta5h0aaaaaa", "5ta5h0aaaaaa"]


def test_restore_refuses_an_undecided_record() -> None:
    git = FakeGit()
    _, unstash, _, _ = _pair(git)

    with pytest.raises(RuntimeError, match="never decided"):
        unstash.proceed()


def test_events_stay_silent_until_opened() -> None:
    events = ProgressEvents()
    seen: list[str] = []
    events.subscribe(lambda: seen.append("changed"))
    stash = StashSection(repo=repo("core", FakeGit(status=DIRTY)), record=StashRecord(), events=events)

    stash.proceed()
    assert seen == []

    events.open()
    stash.stop()
    assert seen == []


def test_unsubscribe_removes_listener() -> None:
    events = ProgressEvents()
    events.open()
    seen: list[str] = []
    unsubscribe = events.subscribe(lambda: seen.append("changed"))

    events.emit()
    unsubscribe()
    unsubscribe()
    events.emit()

    assert seen == ["changed"]
