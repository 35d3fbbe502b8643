from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from cherryup.errors import CherryPickConflict, ConfigurationError, DirtyWorkingTreeError
from cherryup.flow import parse_flow
from cherryup.process import CherryUpProcess

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")

WORK_BRANCH = "dev-dev-cherryup/from-main"


def _git(cwd: Path, *args: str) -> str:
    p = subprocess.run(["git", *args], cwd=cwd, text=True, capture_output=True, check=True)
    return p.stdout.strip()


def _commit(cwd: Path, name: str, content: str, message: str) -> None:
    (cwd / name).write_text(content, encoding="utf-8")
    _git(cwd, "add", name)
    _git(cwd, "commit", "-q", "-m", message)


@pytest.fixture
def work(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A working copy on `main` whose `origin` has `main` and `dev` at the same commit."""
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for key in ("GIT_AUTHOR_NAME", "GIT_COMMITTER_NAME"):
        monkeypatch.setenv(key, "Dev")
    for key in ("GIT_AUTHOR_EMAIL", "GIT_COMMITTER_EMAIL"):
        monkeypatch.setenv(key, "dev@example.com")

    origin = tmp_path / "origin.git"
    work = tmp_path / "work"
    origin.mkdir()
    work.mkdir()
    _git(origin, "init", "-q", "--bare")
    _git(work, "init", "-q")
    _git(work, "checkout", "-q", "-b", "main")
    _git(work, "config", "user.email", "dev@example.com")
    _git(work, "config", "user.name", "Dev")
    _git(work, "config", "commit.gpgsign", "false")
    _git(work, "remote", "add", "origin", str(origin))

    _commit(work, "shared.txt", "base\n", "base")
    _git(work, "push", "-q", "origin", "main")
    _git(work, "push", "-q", "origin", "main:dev")
    return work


def _run_to_end(process: CherryUpProcess) -> None:
    assert process.proceed() is False  # analysed
    assert process.proceed() is False  # checkpoint
    assert process.proceed() is True


def test_promotes_new_commit_and_restores_local_work(work: Path) -> None:
    origin = work.parent / "origin.git"
    _commit(work, "feature.txt", "feature\n", "add feature")
    _git(work, "push", "-q", "origin", "main")
    (work / "shared.txt").write_text("local edit\n", encoding="utf-8")
    (work / "notes.txt").write_text("scratch\n", encoding="utf-8")

    with CherryUpProcess.create({"work": work}, parse_flow("main -> dev")) as process:
        _run_to_end(process)

    assert _git(origin, "log", "--format=%s", WORK_BRANCH).splitlines() == ["add feature", "base"]
    assert _git(work, "rev-parse", "--abbrev-ref", "HEAD") == "main"
    assert _git(work, "branch", "--list", WORK_BRANCH) == ""
    assert (work / "shared.txt").read_text(encoding="utf-8") == "local edit\n"
    assert (work / "notes.txt").read_text(encoding="utf-8") == "scratch\n"
    assert _git(work, "stash", "list") == ""


def test_already_promoted_commits_are_not_replayed(work: Path) -> None:
    _commit(work, "feature.txt", "feature\n", "add feature")
    _git(work, "push", "-q", "origin", "main")
    _git(work, "checkout", "-q", "-b", "dev-local", "origin/dev")
    _git(work, "cherry-pick", "main")
    _git(work, "push", "-q", "origin", "dev-local:dev")
    _git(work, "checkout", "-q", "main")

    with CherryUpProcess.create({"work": work}, parse_flow("main -> dev")) as process:
        assert process.proceed() is True

    assert [s.label for s in process.steps][1] == "main -> dev"
    assert len(process.steps) == 3


def test_conflict_is_resumed_after_manual_resolution(work: Path) -> None:
    origin = work.parent / "origin.git"
    _git(work, "checkout", "-q", "-b", "dev-local", "origin/dev")
    _commit(work, "shared.txt", "dev\n", "dev change")
    _git(work, "push", "-q", "origin", "dev-local:dev")
    _git(work, "checkout", "-q", "main")
    _commit(work, "shared.txt", "main\n", "main change")
    _git(work, "push", "-q", "origin", "main")

    with CherryUpProcess.create({"work": work}, parse_flow("main -> dev")) as process:
        assert process.proceed() is False
        with pytest.raises(CherryPickConflict):
            process.proceed()
        with pytest.raises(DirtyWorkingTreeError):
            process.proceed()

        (work / "shared.txt").write_text("dev and main\n", encoding="utf-8")
        _git(work, "add", "shared.txt")
        assert process.proceed() is False
        assert process.proceed() is True

    assert _git(origin, "log", "--format=%s", WORK_BRANCH).splitlines() == ["main change", "dev change", "base"]
    assert _git(origin, "show", f"{WORK_BRANCH}:shared.txt") == "dev and main"
    assert _git(work, "rev-parse", "--abbrev-ref", "HEAD") == "main"


def test_author_git_rejects_stops_before_any_change(work: Path) -> None:
    _commit(work, "feature.txt", "feature\n", "add feature")
    _git(work, "push", "-q", "origin", "main")
    (work / "notes.txt").write_text("scratch\n", encoding="utf-8")

    with CherryUpProcess.create({"work": work}, parse_flow("main -> dev"), author_filter="jane:doe") as process:
        with pytest.raises(ConfigurationError, match="not a valid branch name"):
            process.proceed()
        assert process.stop() is True

    assert _git(work, "rev-parse", "--abbrev-ref", "HEAD") == "main"
    assert (work / "notes.txt").read_text(encoding="utf-8") == "scratch\n"
    assert _git(work, "stash", "list") == ""
