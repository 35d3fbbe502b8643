"""Branch-transition section: promote one hop (`from -> to`) across every repository.

State machine
    NONE -> ANALYZING -> ANALYZED -> RUNNING -> DONE
                      \\-> DONE (nothing to replay)
    NONE / ANALYZING / ANALYZED -> STOPPED       (synthesized steps are discarded)
    RUNNING -> STOPPED                            (once every child step accepted the stop)

Analysis (no side effects, safe to repeat after a failure)
For every repository:
- resolve `<remote>/<to>` and `<remote>/<from>`; a missing ref is a `ConfigurationError`
  naming the repository and the ref;
- derive the operator's working branch `<to>-<author>-cherryup/from-<from>`, where
  `<author>` is the configured author filter or else the local part of `user.email`
  (so two operators promoting the same hop never share a branch); a name git rejects is a
  `ConfigurationError`, raised before anything is shown or changed;
- compute the commits to replay with `branch_diff.diff`.

All picks of all repositories are then sorted by commit time as one sequence, so a change
series spread over several repositories is replayed in the order it was written. Each
repository's picks are first put oldest-first so commits sharing a timestamp keep their
history order.

No picks means the hop is already promoted: the section is DONE with no steps. Otherwise
the plan is:

    PrepareBranch x repos, CherryPick x commits, Wait, Push x repos, FinishBranch x repos

Child steps (each idempotent once DONE or STOPPED)
- `PrepareBranch`: remember the current branch (first run only), create the working branch
  from the analysed `<remote>/<to>` commit unless already on it, hard-reset it there.
- `CherryPick`: replay one commit. A conflict leaves the step PROCESSING and raises
  `CherryPickConflict`; the next run checks that every conflicting, modified, missing or
  untracked path is gone and then amends the resolution into the replayed commit.
  Cancelling it mid-conflict requires a clean tree.
- `Wait`: a checkpoint that needs one extra `proceed()` before anything is published.
- `Push`: publish the working branch to the remote.
- `FinishBranch`: go back to the remembered branch and force-delete the working branch.
  Cancelling performs the same cleanup once a branch was remembered.
"""

from __future__ import annotations

import re
import sys
from collections.abc import Callable
from enum import Enum

from .branch_diff import diff
from .errors import CherryPickConflict, ConfigurationError, DirtyWorkingTreeError, GitOperationError
from .flow import BranchTransition
from .git_ops import CherryPickStatus, Commit, Ref, Repo
from .steps import BranchSwitchRecord, ProgressEvents, ProgressStep, Step, StepProgress


class BranchState(str, Enum):
    NONE = "none"
    ANALYZING = "analyzing"
    ANALYZED = "analyzed"
    RUNNING = "running"
    DONE = "done"
    STOPPED = "stopped"


SECTION_PROGRESS: dict[BranchState, StepProgress] = {
    BranchState.NONE: StepProgress.NONE,
    BranchState.ANALYZING: StepProgress.PROCESSING,
    BranchState.ANALYZED: StepProgress.NONE,
    BranchState.RUNNING: StepProgress.PROCESSING,
    BranchState.DONE: StepProgress.DONE,
    BranchState.STOPPED: StepProgress.STOPPED,
}


def working_branch_name(transition: BranchTransition, *, author: str) -> str:
    return f"{transition.to_branch}-{author}-cherryup/from-{transition.from_branch}"


def _author_slug(author: str) -> str:
    return re.sub(r"\s+", "-", author.strip())


class PrepareBranch(ProgressStep):
    def __init__(
        self,
        *,
        repo: Repo,
        target_branch: str,
        upstream: Ref,
        record: BranchSwitchRecord,
        events: ProgressEvents,
    ) -> None:
        super().__init__(events=events)
        self.repo = repo
        self.target_branch = target_branch
        self.upstream = upstream
        self.record = record

    @property
    def label(self) -> str:
        return f"{self.repo.name}: Prepare Branch {self.target_branch}"

    def run(self) -> bool:
        if self.finished:
            return True
        self.events.emit_if(self._move(StepProgress.PROCESSING))

        current = self.repo.git.current_branch()
        previous: str | None = None
        if current != self.target_branch:
            self.repo.git.checkout_new_branch(self.target_branch, self.upstream.sha)
            previous = current
        self.record.decide_if_unset(previous)
        self.repo.git.hard_reset(self.upstream.sha)

        self.events.emit_if(self._move(StepProgress.DONE))
        return True

    def stop(self) -> bool:
        if not self.finished:
            self.events.emit_if(self._move(StepProgress.STOPPED))
        return True


class CherryPick(ProgressStep):
    def __init__(self, *, repo: Repo, commit: Commit, events: ProgressEvents) -> None:
        super().__init__(events=events)
        self.repo = repo
        self.commit = commit
        self.awaiting_continuation = False

    @property
    def label(self) -> str:
        return f"{self.repo.name}: Cherry pick {self.commit.short_sha} - {self.commit.short_message}"

    def run(self) -> bool:
        if self.finished:
            return True
        self.events.emit_if(self._move(StepProgress.PROCESSING))
        if self.awaiting_continuation:
            return self._continue()
        return self._pick()

    def _pick(self) -> bool:
        result = self.repo.git.cherry_pick(self.commit)
        if result.status == CherryPickStatus.OK:
            self.events.emit_if(self._move(StepProgress.DONE))
            return True
        if result.status == CherryPickStatus.CONFLICTING:
            self.awaiting_continuation = True
            print(f"[cherryup] {self.repo.name}: conflict while picking {self.commit.short_sha}", file=sys.stderr)
            raise CherryPickConflict(repo=self.repo.name, short_sha=self.commit.short_sha)
        raise GitOperationError(
            f"{self.repo.name}: failed to cherry-pick {self.commit.short_sha}",
            output=result.message,
        )

    def _continue(self) -> bool:
        dirty = self.repo.git.status().dirty_paths
        if dirty:
            raise DirtyWorkingTreeError(
                f"{self.repo.name}: cannot continue cherry picking. Following paths are dirty:\n" + "\n".join(dirty),
                paths=dirty,
            )
        self.repo.git.amend_commit()
        self.awaiting_continuation = False
        self.events.emit_if(self._move(StepProgress.DONE))
        return True

    def stop(self) -> bool:
        if self.progress == StepProgress.PROCESSING:
            status = self.repo.git.status()
            if not status.is_clean:
                raise DirtyWorkingTreeError(
                    f"{self.repo.name}: couldn't stop cherry picking because the repository is not clean.",
                    paths=[*status.dirty_paths, *status.staged],
                )
        if not self.finished:
            self.events.emit_if(self._move(StepProgress.STOPPED))
        return True


class Wait(ProgressStep):
    def __init__(self, *, events: ProgressEvents) -> None:
        super().__init__(events=events)
        self.waited = False

    @property
    def label(self) -> str:
        return "-------- Ok? ----------"

    def run(self) -> bool:
        if self.finished:
            return True
        if self.waited:
            self.events.emit_if(self._move(StepProgress.DONE))
            return True
        self.waited = True
        self.events.emit_if(self._move(StepProgress.PROCESSING))
        return False

    def stop(self) -> bool:
        if not self.finished:
            self.events.emit_if(self._move(StepProgress.STOPPED))
        return True


class Push(ProgressStep):
    def __init__(self, *, repo: Repo, target_branch: str, remote: str, events: ProgressEvents) -> None:
        super().__init__(events=events)
        self.repo = repo
        self.target_branch = target_branch
        self.remote = remote

    @property
    def label(self) -> str:
        return f"{self.repo.name}: Push to {self.remote}/{self.target_branch}"

    def run(self) -> bool:
        if self.finished:
            return True
        self.events.emit_if(self._move(StepProgress.PROCESSING))
        self.repo.git.push(self.target_branch, remote=self.remote)
        print(f"[cherryup] {self.repo.name}: pushed {self.remote}/{self.target_branch}", file=sys.stderr)
        self.events.emit_if(self._move(StepProgress.DONE))
        return True

    def stop(self) -> bool:
        if not self.finished:
            self.events.emit_if(self._move(StepProgress.STOPPED))
        return True


class FinishBranch(ProgressStep):
    def __init__(
        self,
        *,
        repo: Repo,
        target_branch: str,
        record: BranchSwitchRecord,
        events: ProgressEvents,
    ) -> None:
        super().__init__(events=events)
        self.repo = repo
        self.target_branch = target_branch
        self.record = record

    @property
    def label(self) -> str:
        postfix = f" (back to {self.record.original_branch})" if self.record.original_branch else ""
        return f"{self.repo.name}: Finalize Branch {self.target_branch}{postfix}"

    def run(self) -> bool:
        if self.finished:
            return True
        if self.record.is_unset:
            raise RuntimeError(f"{self.repo.name}: branch {self.target_branch} was never prepared.")
        self.events.emit_if(self._move(StepProgress.PROCESSING))

        original = self.record.original_branch
        if original is not None:
            self.repo.git.checkout_existing(original)
            self.repo.git.delete_branch(self.target_branch, force=True)
            print(f"[cherryup] {self.repo.name}: back on {original}, deleted {self.target_branch}", file=sys.stderr)

        self.events.emit_if(self._move(StepProgress.DONE))
        return True

    def stop(self) -> bool:
        if self.finished:
            return True
        if not self.record.is_unset:
            return self.run()
        self.events.emit_if(self._move(StepProgress.STOPPED))
        return True


BranchStep = PrepareBranch | CherryPick | Wait | Push | FinishBranch


class BranchSection:
    is_section = True

    def __init__(
        self,
        *,
        transition: BranchTransition,
        repos: list[Repo],
        events: ProgressEvents,
        on_steps_changed: Callable[[], None],
        author_filter: str = "",
        remote: str = "origin",
    ) -> None:
        self.transition = transition
        self.repos = repos
        self.events = events
        self.author_filter = author_filter
        self.remote = remote
        self.state = BranchState.NONE
        self.children: list[BranchStep] = []
        self._on_steps_changed = on_steps_changed

    @property
    def label(self) -> str:
        return str(self.transition)

    @property
    def progress(self) -> StepProgress:
        return SECTION_PROGRESS[self.state]

    def steps(self) -> list[Step]:
        return [self, *self.children]

    def proceed(self) -> bool:
        if self.state in (BranchState.NONE, BranchState.ANALYZING):
            return self._analyze()
        if self.state in (BranchState.ANALYZED, BranchState.RUNNING):
            self._enter(BranchState.RUNNING)
            done = all(step.run() for step in self.children)
            if done:
                self._enter(BranchState.DONE)
                print(f"[cherryup] {self.transition}: done", file=sys.stderr)
            return done
        if self.state == BranchState.DONE:
            return True
        raise RuntimeError(f"Branch section {self.transition} was stopped and cannot proceed.")

    def stop(self) -> bool:
        if self.state in (BranchState.NONE, BranchState.ANALYZING, BranchState.ANALYZED):
            self._set_children([])
            self._enter(BranchState.STOPPED)
            return True
        if self.state == BranchState.RUNNING:
            done = all(step.stop() for step in self.children)
            if done:
                self._enter(BranchState.STOPPED)
            return done
        return True

    def _analyze(self) -> bool:
        self._enter(BranchState.ANALYZING)

        prepares: list[PrepareBranch] = []
        picks: list[CherryPick] = []
        for repo in self.repos:
            target_branch = working_branch_name(self.transition, author=self._author(repo))
            if not repo.git.is_valid_branch_name(target_branch):
                raise ConfigurationError(
                    f"{repo.name}: working branch {target_branch!r} is not a valid branch name;"
                    " check the author setting."
                )
            to_upstream = self._upstream(repo, self.transition.to_branch)
            from_upstream = self._upstream(repo, self.transition.from_branch)
            prepares.append(
                PrepareBranch(
                    repo=repo,
                    target_branch=target_branch,
                    upstream=to_upstream,
                    record=BranchSwitchRecord(),
                    events=self.events,
                )
            )
            missing = diff(repo.git, from_upstream.sha, to_upstream.sha)
            picks.extend(CherryPick(repo=repo, commit=commit, events=self.events) for commit in reversed(missing))

        if not picks:
            self._set_children([])
            self._enter(BranchState.DONE)
            print(f"[cherryup] {self.transition}: nothing to cherry-pick", file=sys.stderr)
            return True

        picks.sort(key=lambda step: step.commit.commit_time)
        children: list[BranchStep] = [*prepares, *picks, Wait(events=self.events)]
        children.extend(
            Push(repo=p.repo, target_branch=p.target_branch, remote=self.remote, events=self.events) for p in prepares
        )
        children.extend(
            FinishBranch(repo=p.repo, target_branch=p.target_branch, record=p.record, events=self.events)
            for p in prepares
        )
        self._set_children(children)
        self._enter(BranchState.ANALYZED)
        print(f"[cherryup] {self.transition}: {len(picks)} commit(s) to cherry-pick", file=sys.stderr)
        return False

    def _author(self, repo: Repo) -> str:
        if self.author_filter.strip():
            return _author_slug(self.author_filter)
        email = repo.git.user_email()
        if not email:
            raise ConfigurationError(f"No user email set for {repo.name}.")
        return email.split("@", 1)[0]

    def _upstream(self, repo: Repo, branch: str) -> Ref:
        name = f"{self.remote}/{branch}"
        ref = repo.git.resolve_ref(name)
        if ref is None:
            raise ConfigurationError(f"Expected to find an upstream branch {name} for {repo.name}.")
        return ref

    def _enter(self, state: BranchState) -> None:
        changed = state != self.state
        self.state = state
        self.events.emit_if(changed)

    def _set_children(self, children: list[BranchStep]) -> None:
        self.children = children
        self._on_steps_changed()
