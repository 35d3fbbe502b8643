"""The cherryup process: one promotion run over a set of repositories.

`CherryUpProcess` builds its section list once, at construction:

    StashSection x repos, BranchSection x transitions, UnstashSection x repos

and is then driven by repeated calls:

- `proceed()`: advance every section in order; the first section that is not finished
  ends the call (later sections are not touched). Returns `True` once every section is
  finished. A section may need many calls: it pauses after analysis, at the checkpoint and
  on every conflict the operator has to resolve by hand.
- `stop()`: the same walk over the cancellation path. Stash and branch sections cancel,
  restore sections still restore.

Errors raised by a section (conflicts, dirty trees, missing refs, git failures) propagate
to the caller unchanged. The process stays usable: the next `proceed()` resumes at the step
that raised. Nothing runs concurrently and a second `proceed()`/`stop()` while one is in
flight raises `RuntimeError`.

Live view
`steps` is the flattened list of every section's current steps, recomputed whenever a
section adds or drops steps. Listeners registered with `subscribe()` are called after
every structural or progress change (never during construction) and read `steps` again.

`close()` releases every repository handle; the process is also a context manager.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path

from .branch import BranchSection
from .errors import ConfigurationError
from .flow import BranchFlow
from .git_ops import DryRunGitClient, GitClient, Repo
from .stash import StashSection, UnstashSection
from .steps import Listener, ProgressEvents, Section, StashRecord, Step


class CherryUpProcess:
    def __init__(
        self,
        repos: list[Repo],
        branch_flow: BranchFlow,
        *,
        author_filter: str = "",
        remote: str = "origin",
    ) -> None:
        self.repos = list(repos)
        self.branch_flow = list(branch_flow)
        self.events = ProgressEvents()
        self._steps: list[Step] = []
        self._busy = False

        records = [StashRecord() for _ in self.repos]
        self.sections: list[Section] = [
            StashSection(repo=repo, record=record, events=self.events) for repo, record in zip(self.repos, records)
        ]
        self.sections.extend(
            BranchSection(
                transition=transition,
                repos=self.repos,
                events=self.events,
                on_steps_changed=self._refresh_steps,
                author_filter=author_filter,
                remote=remote,
            )
            for transition in self.branch_flow
        )
        self.sections.extend(
            UnstashSection(repo=repo, record=record, events=self.events) for repo, record in zip(self.repos, records)
        )

        self._refresh_steps()
        self.events.open()

    @classmethod
    def create(
        cls,
        paths: Mapping[str, Path],
        branch_flow: BranchFlow,
        *,
        author_filter: str = "",
        remote: str = "origin",
        dry_run: bool = False,
    ) -> CherryUpProcess:
        repos: list[Repo] = []
        for name, path in paths.items():
            root = Path(path).expanduser()
            if not (root / ".git").exists():
                for repo in repos:
                    repo.close()
                raise ConfigurationError(f"{name}: {root} is not a git working copy.")
            client_cls = DryRunGitClient if dry_run else GitClient
            repos.append(Repo(git=client_cls(repo_root=root.resolve()), name=name))
        return cls(repos, branch_flow, author_filter=author_filter, remote=remote)

    @property
    def steps(self) -> list[Step]:
        return list(self._steps)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.events.subscribe(listener)

    def proceed(self) -> bool:
        return self._drive(lambda section: section.proceed())

    def stop(self) -> bool:
        return self._drive(lambda section: section.stop())

    def close(self) -> None:
        for repo in self.repos:
            repo.close()

    def __enter__(self) -> CherryUpProcess:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _drive(self, action: Callable[[Section], bool]) -> bool:
        if self._busy:
            raise RuntimeError("cherryup process is already running.")
        self._busy = True
        try:
            return all(action(section) for section in self.sections)
        finally:
            self._busy = False

    def _refresh_steps(self) -> None:
        self._steps = [step for section in self.sections for step in section.steps()]
        self.events.emit()
