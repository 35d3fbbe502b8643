"""Step/section model shared by every phase of a cherryup run.

A *step* is one atomic action shown to the operator: it has a label, a flag telling whether
it heads a section, and a `StepProgress`. A *section* is a phase of the run (stash one
repository, promote one branch hop, restore one repository). It owns its steps, may create
them lazily, and is driven through two calls:

- `proceed() -> bool`: try to advance; `True` once the section is finished.
- `stop() -> bool`: cancel; `True` once the section accepted the cancellation.

Both are safe to call again after they returned `True`.

Progress changes are explicit. A step moves with `_move(progress)`, which returns whether
anything changed, and the step hands that flag to `ProgressEvents.emit_if(...)`. Listeners
are never called while the owning process is still being constructed (`ProgressEvents`
starts muted and is opened by the process once its step list exists).

Decided-once records
Some facts are decided during the run and read by a later step: whether a stash was made
(`StashRecord`) and which branch to return to (`BranchSwitchRecord`). "Not decided yet" must
stay distinguishable from "decided: nothing", so both use the three-valued `Decision`:
`UNSET`, `NONE`, `SOME` (with a value).
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class StepProgress(str, Enum):
    NONE = "none"
    PROCESSING = "processing"
    DONE = "done"
    STOPPED = "stopped"


class Step(Protocol):
    @property
    def label(self) -> str: ...

    @property
    def is_section(self) -> bool: ...

    @property
    def progress(self) -> StepProgress: ...


class Section(Protocol):
    def steps(self) -> list[Step]: ...

    def proceed(self) -> bool: ...

    def stop(self) -> bool: ...


Listener = Callable[[], None]


class ProgressEvents:
    """Listener registry owned by a process; delivery is synchronous and in subscription order."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []
        self._open = False

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def open(self) -> None:
        self._open = True

    def emit(self) -> None:
        if not self._open:
            return
        for listener in list(self._listeners):
            listener()

    def emit_if(self, changed: bool) -> None:
        if changed:
            self.emit()


class ProgressStep:
    is_section = False

    def __init__(self, *, events: ProgressEvents) -> None:
        self.events = events
        self.progress = StepProgress.NONE

    def _move(self, progress: StepProgress) -> bool:
        changed = progress != self.progress
        self.progress = progress
        return changed

    @property
    def finished(self) -> bool:
        return self.progress in (StepProgress.DONE, StepProgress.STOPPED)


class Decision(str, Enum):
    UNSET = "unset"
    NONE = "none"
    SOME = "some"


@dataclass
class _Record:
    decision: Decision = Decision.UNSET
    value: str | None = None

    @property
    def is_unset(self) -> bool:
        return self.decision == Decision.UNSET

    def decide(self, value: str | None) -> None:
        self.decision = Decision.NONE if value is None else Decision.SOME
        self.value = value

    def decide_if_unset(self, value: str | None) -> None:
        if self.is_unset:
            self.decide(value)


class StashRecord(_Record):
    @property
    def stash_ref(self) -> str | None:
        return self.value


class BranchSwitchRecord(_Record):
    @property
    def original_branch(self) -> str | None:
        return self.value
