"""Stash and restore sections.

Each repository gets a `StashSection` at the very start of the run and a matching
`UnstashSection` at the very end. Both are single-step sections: the section is its own
(and only) step.

Stash
- A dirty working copy (anything staged, modified, missing or untracked) is stashed with
  untracked files included, and the stash sha is recorded. A clean one records "no stash".
- Runs once. `proceed()` after DONE or STOPPED is a no-op returning `True`.
- `stop()` before DONE marks the step STOPPED without stashing and still decides the record
  (as "no stash"), so the restore step never meets an undecided record.

Restore
- With a recorded stash: drop the top of the stash list, then apply the recorded stash by
  sha. Dropping first copes with other stashes having been pushed on top in the meantime;
  the stash commit itself survives the drop, so applying it by sha still works. The drop
  happens once even if applying fails and the step is retried.
- Without one it does nothing.
- `stop()` is `proceed()`: restoring the operator's work is never skipped.
"""

from __future__ import annotations

import sys

from .git_ops import Repo
from .steps import ProgressEvents, ProgressStep, StashRecord, Step, StepProgress


def _stash_postfix(record: StashRecord) -> str:
    if record.is_unset:
        return ""
    if record.stash_ref is None:
        return " (not needed)"
    return f" (stashed as {record.stash_ref[:6]})"


class StashSection(ProgressStep):
    is_section = True

    def __init__(self, *, repo: Repo, record: StashRecord, events: ProgressEvents) -> None:
        super().__init__(events=events)
        self.repo = repo
        self.record = record

    @property
    def label(self) -> str:
        return f"Stash {self.repo.name}{_stash_postfix(self.record)}"

    def steps(self) -> list[Step]:
        return [self]

    def proceed(self) -> bool:
        if self.finished:
            return True

        self.events.emit_if(self._move(StepProgress.PROCESSING))
        if self.repo.git.is_clean():
            self.record.decide(None)
        else:
            stash_ref = self.repo.git.create_stash(include_untracked=True)
            self.record.decide(stash_ref)
            print(f"[cherryup] {self.repo.name}: stashed local changes as {stash_ref[:6]}", file=sys.stderr)
        self.events.emit_if(self._move(StepProgress.DONE))
        return True

    def stop(self) -> bool:
        changed = False
        if self.progress != StepProgress.DONE:
            changed = self._move(StepProgress.STOPPED)
        if self.record.is_unset:
            self.record.decide(None)
            changed = True
        self.events.emit_if(changed)
        return True


class UnstashSection(ProgressStep):
    is_section = True

    def __init__(self, *, repo: Repo, record: StashRecord, events: ProgressEvents) -> None:
        super().__init__(events=events)
        self.repo = repo
        self.record = record
        self._dropped = False

    @property
    def label(self) -> str:
        return f"Restore {self.repo.name}{_stash_postfix(self.record)}"

    def steps(self) -> list[Step]:
        return [self]

    def proceed(self) -> bool:
        if self.progress == StepProgress.DONE:
            return True
        if self.progress == StepProgress.STOPPED:
            raise RuntimeError(f"Restoring {self.repo.name} cannot be stopped.")
        if self.record.is_unset:
            raise RuntimeError(f"Stash state of {self.repo.name} was never decided.")

        self.events.emit_if(self._move(StepProgress.PROCESSING))
        stash_ref = self.record.stash_ref
        if stash_ref is not None:
            if not self._dropped:
                self.repo.git.drop_stash(0)
                self._dropped = True
            self.repo.git.apply_stash(stash_ref)
            print(f"[cherryup] {self.repo.name}: restored local changes from {stash_ref[:6]}", file=sys.stderr)
        self.events.emit_if(self._move(StepProgress.DONE))
        return True

    def stop(self) -> bool:
        return self.proceed()
