"""Exceptions raised by the cherryup engine.

Every condition that aborts a `proceed()`/`stop()` call derives from `CherryUpError`. The
engine never catches these itself; the front end shows the message and keeps the process
object so the operator can fix the cause and call `proceed()` again.

- `ConfigurationError`: missing upstream ref, missing author identity, unusable branch flow
  or a path that is not a git working copy.
- `CherryPickConflict`: a replayed commit conflicted. The run is paused, not broken.
- `DirtyWorkingTreeError`: stray paths block continuing or cancelling a paused pick.
- `GitOperationError`: git itself reported a failure; the message carries git's output.
"""

from __future__ import annotations

from collections.abc import Iterable


class CherryUpError(RuntimeError):
    pass


class ConfigurationError(CherryUpError):
    pass


class CherryPickConflict(CherryUpError):
    def __init__(self, *, repo: str, short_sha: str) -> None:
        super().__init__(f"{repo}: cherry picking {short_sha} has merge conflicts! Please resolve.")
        self.repo = repo
        self.short_sha = short_sha


class DirtyWorkingTreeError(CherryUpError):
    def __init__(self, message: str, *, paths: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.paths = list(paths)


class GitOperationError(CherryUpError):
    def __init__(self, message: str, *, output: str = "") -> None:
        super().__init__(f"{message}: {output}" if output else message)
        self.output = output
