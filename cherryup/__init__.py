"""cherryup: promote commits along a chain of branches across related repositories.

Given a branch flow such as `main -> dev -> release` and one or more git working copies,
cherryup replays onto each target branch the commits of its source branch that the target
does not have yet, on a per-operator working branch, and publishes that branch. Uncommitted
work is stashed first and restored last, and the run can pause indefinitely while the
operator resolves a conflict by hand.

What cherryup provides
- A CLI entrypoint (`cherryup.cli:main`, runnable via `python -m cherryup`) that loads the
  persisted configuration, builds a run and drives it interactively.
- The engine (`cherryup.process.CherryUpProcess`) that:
  - builds one section per phase: stash per repository, one per branch hop, restore per
    repository,
  - is advanced by repeated, idempotent `proceed()` calls and cancelled by `stop()`,
  - exposes a live, flattened step list plus change notifications for the front end.
- The commit-set differ (`cherryup.branch_diff.diff`) matching commits across branches by
  author time and subject, since replaying changes a commit's hash.
- A git gateway (`cherryup.git_ops`) shelling out to `git`, with a dry-run variant.

What cherryup does not do
- Merge or diff content itself; conflicts are git's and the operator's business.
- Coordinate several operators; working branch names only keep them from colliding.

Key exports from this module
- `__version__`: the package version string. (`__all__` is intentionally limited to this.)
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
