"""Git gateway for cherryup.

The engine never touches repository storage itself; every read and every mutation goes
through one of the clients in this module:

- `GitClient`: the real implementation that shells out to `git` via `subprocess`, bound to
  one working copy (`repo_root`).
- `DryRunGitClient`: reads the repository for real (status, log, refs) but turns every
  mutation into a no-op, so `--dry-run` can show the plan a run would execute without
  stashing, checking out, picking or pushing anything.

Data model
- `Commit`: one entry of `git log` (sha, parents, author/commit time, subject line).
  `Commit.fingerprint` is the `(author_time, short_message)` pair used to match a commit
  across branches after it was replayed under a different hash.
- `Ref`: a resolved ref name plus the commit it points at.
- `WorkingTreeStatus`: `git status --porcelain` split into conflicting, modified (work tree
  differs from index), missing (deleted in the work tree), untracked and staged paths.
- `CherryPickResult`: `ok`, `conflicting` (a conflict was left in the work tree) or `failed`
  (git refused to pick, e.g. a dirty tree), with git's output for display.

GitClient API (public methods)
All methods map to a single git command (two where noted), so callers can reason about
side effects.

- `status()` / `is_clean()`: porcelain status; clean means nothing staged, modified,
  missing, conflicting or untracked.
- `create_stash(include_untracked=..., message=...) -> str`: `git stash push` and return the
  sha of the new `stash@{0}`.
- `drop_stash(index)`, `apply_stash(stash_ref)`: `git stash drop stash@{index}` and
  `git stash apply --index <stash_ref>`.
- `log(ref) -> list[Commit]`: history reachable from `ref`, newest first (git's order).
- `resolve_ref(name) -> Ref | None`: `None` when the name does not resolve to a commit.
- `is_valid_branch_name(name) -> bool`: `git check-ref-format --branch`.
- `current_branch() -> str`: raises `ConfigurationError` on a detached HEAD.
- `checkout_new_branch(name, start_ref)`: `git checkout -B <name> <start_ref> --no-track`.
  `-B` resets a leftover branch of the same name from an earlier aborted run.
- `checkout_existing(name)`, `hard_reset(ref)`, `delete_branch(name, force=...)`.
- `cherry_pick(commit) -> CherryPickResult`: a pick that turns out empty (its change is
  already on the branch) is skipped and reported as `ok`.
- `amend_commit()`: fold the operator's conflict resolution into the replayed commit. While
  git still has the pick pending this concludes it (`cherry-pick --continue`, keeping the
  original message and author); otherwise it amends `HEAD`.
- `push(branch, remote=...)`: force-push the working branch; the branch is owned by the
  operator running the promotion.
- `user_email() -> str | None`: `git config --get user.email`.
- `close()`: release the client; any later command raises `RuntimeError`.

Failures
Commands run through `_git(...)` raise `GitOperationError` carrying git's stderr verbatim.
Commands whose exit status is an answer rather than a failure (`rev-parse --verify`,
`check-ref-format`, `config --get`, `cherry-pick`) go through `_run(...)` and inspect the
return code. Every command runs with `GIT_EDITOR=true` and `GIT_TERMINAL_PROMPT=0` so git
never blocks waiting for an editor or a credential prompt that nobody can see.
"""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .errors import ConfigurationError, GitOperationError

_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = _FIELD_SEP.join(["%H", "%P", "%at", "%ct", "%s"]) + _RECORD_SEP

_UNMERGED = {"DD", "AU", "UD", "UA", "DU", "AA", "UU"}

STASH_MESSAGE = "cherryup: stash current WIP"


@dataclass(frozen=True)
class CommitFingerprint:
    author_time: int
    short_message: str


@dataclass(frozen=True)
class Commit:
    sha: str
    parents: tuple[str, ...]
    author_time: int
    commit_time: int
    short_message: str

    @property
    def fingerprint(self) -> CommitFingerprint:
        return CommitFingerprint(author_time=self.author_time, short_message=self.short_message)

    @property
    def is_merge(self) -> bool:
        return len(self.parents) > 1

    @property
    def short_sha(self) -> str:
        return self.sha[:6]


@dataclass(frozen=True)
class Ref:
    name: str
    sha: str


class CherryPickStatus(str, Enum):
    OK = "ok"
    CONFLICTING = "conflicting"
    FAILED = "failed"


@dataclass(frozen=True)
class CherryPickResult:
    status: CherryPickStatus
    message: str = ""


@dataclass(frozen=True)
class WorkingTreeStatus:
    conflicting: tuple[str, ...] = ()
    modified: tuple[str, ...] = ()
    missing: tuple[str, ...] = ()
    untracked: tuple[str, ...] = ()
    staged: tuple[str, ...] = ()

    @property
    def dirty_paths(self) -> list[str]:
        """Paths that block continuing a paused pick (staged changes do not)."""
        return [*self.conflicting, *self.modified, *self.missing, *self.untracked]

    @property
    def is_clean(self) -> bool:
        return not self.dirty_paths and not self.staged


def parse_porcelain(out: str) -> WorkingTreeStatus:
    """Parse `git status --porcelain=v1 -z` output."""
    conflicting: list[str] = []
    modified: list[str] = []
    missing: list[str] = []
    untracked: list[str] = []
    staged: list[str] = []

    entries = out.split("\0")
    i = 0
    while i < len(entries):
        entry = entries[i]
        i += 1
        if len(entry) < 4:
            continue
        code, path = entry[:2], entry[3:]
        x, y = code[0], code[1]
        if x in "RC":
            # Renames and copies are followed by their source path.
            i += 1
        if code == "??":
            untracked.append(path)
            continue
        if code in _UNMERGED:
            conflicting.append(path)
            continue
        if x not in " ?!":
            staged.append(path)
        if y in "MT":
            modified.append(path)
        elif y == "D":
            missing.append(path)

    return WorkingTreeStatus(
        conflicting=tuple(conflicting),
        modified=tuple(modified),
        missing=tuple(missing),
        untracked=tuple(untracked),
        staged=tuple(staged),
    )


def parse_log(out: str) -> list[Commit]:
    commits: list[Commit] = []
    for record in out.split(_RECORD_SEP):
        record = record.strip("\n")
        if not record:
            continue
        sha, parents, author_time, commit_time, subject = record.split(_FIELD_SEP, 4)
        commits.append(
            Commit(
                sha=sha,
                parents=tuple(parents.split()),
                author_time=int(author_time),
                commit_time=int(commit_time),
                short_message=subject,
            )
        )
    return commits


class GitClient:
    def __init__(self, *, repo_root: Path) -> None:
        self.repo_root = repo_root
        self.closed = False

    def status(self) -> WorkingTreeStatus:
        return parse_porcelain(self._git(["status", "--porcelain=v1", "-z", "--untracked-files=all"]))

    def is_clean(self) -> bool:
        return self.status().is_clean

    def create_stash(self, *, include_untracked: bool, message: str = STASH_MESSAGE) -> str:
        args = ["stash", "push"]
        if include_untracked:
            args.append("--include-untracked")
        out = self._git([*args, "-m", message])
        if "No local changes to save" in out:
            raise GitOperationError(f"git stash created nothing in {self.repo_root}", output=out.strip())
        return self._git(["rev-parse", "--verify", "stash@{0}"]).strip()

    def drop_stash(self, index: int) -> None:
        self._git(["stash", "drop", f"stash@{{{index}}}"])

    def apply_stash(self, stash_ref: str) -> None:
        self._git(["stash", "apply", "--index", stash_ref])

    def log(self, ref: str) -> list[Commit]:
        return parse_log(self._git(["log", f"--format={_LOG_FORMAT}", ref, "--"]))

    def resolve_ref(self, name: str) -> Ref | None:
        p = self._run(["rev-parse", "--verify", "--quiet", f"{name}^{{commit}}"])
        if p.returncode != 0:
            return None
        return Ref(name=name, sha=p.stdout.strip())

    def is_valid_branch_name(self, name: str) -> bool:
        return self._run(["check-ref-format", "--branch", name]).returncode == 0

    def current_branch(self) -> str:
        out = self._git(["rev-parse", "--abbrev-ref", "HEAD"]).strip()
        if out == "HEAD":
            raise ConfigurationError(f"Detached HEAD in {self.repo_root}; check out a named branch first.")
        return out

    def checkout_new_branch(self, name: str, start_ref: str) -> None:
        self._git(["checkout", "--no-track", "-B", name, start_ref])

    def checkout_existing(self, name: str) -> None:
        self._git(["checkout", name])

    def hard_reset(self, ref: str) -> None:
        self._git(["reset", "--hard", ref])

    def cherry_pick(self, commit: Commit) -> CherryPickResult:
        p = self._run(["cherry-pick", commit.sha])
        if p.returncode == 0:
            return CherryPickResult(CherryPickStatus.OK)

        message = (p.stderr or p.stdout).strip()
        if self.status().conflicting:
            return CherryPickResult(CherryPickStatus.CONFLICTING, message)
        if self._pick_in_progress():
            # Nothing left to apply: the change is already on this branch.
            self._git(["cherry-pick", "--skip"])
            return CherryPickResult(CherryPickStatus.OK, message)
        return CherryPickResult(CherryPickStatus.FAILED, message)

    def amend_commit(self) -> None:
        if self._pick_in_progress():
            self._git(["cherry-pick", "--continue"])
        else:
            self._git(["commit", "--amend", "--no-edit"])

    def delete_branch(self, name: str, *, force: bool) -> None:
        self._git(["branch", "-D" if force else "-d", name])

    def push(self, branch: str, *, remote: str = "origin") -> None:
        self._git(["push", "--force", remote, f"refs/heads/{branch}:refs/heads/{branch}"])

    def user_email(self) -> str | None:
        p = self._run(["config", "--get", "user.email"])
        email = p.stdout.strip()
        if p.returncode != 0 or not email:
            return None
        return email

    def close(self) -> None:
        self.closed = True

    def _pick_in_progress(self) -> bool:
        return self._run(["rev-parse", "--verify", "--quiet", "CHERRY_PICK_HEAD"]).returncode == 0

    def _git(self, args: list[str]) -> str:
        p = self._run(args)
        if p.returncode != 0:
            raise GitOperationError(
                f"git {' '.join(args)} failed in {self.repo_root}",
                output=(p.stderr or p.stdout).strip(),
            )
        return p.stdout

    def _run(self, args: list[str]) -> subprocess.CompletedProcess[str]:
        if self.closed:
            raise RuntimeError(f"Git client for {self.repo_root} is closed.")
        return subprocess.run(
            ["git", *args],
            cwd=self.repo_root,
            text=True,
            check=False,
            capture_output=True,
            env={**os.environ, "GIT_EDITOR": "true", "GIT_TERMINAL_PROMPT": "0"},
        )


class DryRunGitClient(GitClient):
    """Reads the repository, never changes it."""

    def create_stash(self, *, include_untracked: bool, message: str = STASH_MESSAGE) -> str:  # type: ignore[override]
        return "DRYRUN"

    def drop_stash(self, index: int) -> None:  # type: ignore[override]
        return

    def apply_stash(self, stash_ref: str) -> None:  # type: ignore[override]
        return

    def checkout_new_branch(self, name: str, start_ref: str) -> None:  # type: ignore[override]
        return

    def checkout_existing(self, name: str) -> None:  # type: ignore[override]
        return

    def hard_reset(self, ref: str) -> None:  # type: ignore[override]
        return

    def cherry_pick(self, commit: Commit) -> CherryPickResult:  # type: ignore[override]
        return CherryPickResult(CherryPickStatus.OK)

    def amend_commit(self) -> None:  # type: ignore[override]
        return

    def delete_branch(self, name: str, *, force: bool) -> None:  # type: ignore[override]
        return

    def push(self, branch: str, *, remote: str = "origin") -> None:  # type: ignore[override]
        return


@dataclass
class Repo:
    """A working copy plus the name shown to the operator."""

    git: GitClient
    name: str

    def close(self) -> None:
        self.git.close()
