from __future__ import annotations

from cherryup.git_ops import (
    CherryPickResult,
    CherryPickStatus,
    Commit,
    Ref,
    Repo,
    WorkingTreeStatus,
)

DIRTY = WorkingTreeStatus(modified=("wip.txt",), untracked=("notes.md",))
CLEAN = WorkingTreeStatus()


def commit(sha: str, t: int, msg: str | None = None, *, parents: tuple[str, ...] = ("p",)) -> Commit:
    return Commit(sha=sha, parents=parents, author_time=t, commit_time=t, short_message=msg or f"commit {sha}")


class FakeGit:
    """In-memory gateway recording every call as `(method, *args)`."""

    def __init__(
        self,
        *,
        branch: str = "main",
        status: WorkingTreeStatus = CLEAN,
        refs: dict[str, str] | None = None,
        logs: dict[str, list[Commit]] | None = None,
        email: str | None = "dev@example.com",
        pick_results: dict[str, CherryPickStatus] | None = None,
    ) -> None:
        self.branch = branch
        self.working_status = status
        self.refs = refs or {}
        self.logs = logs or {}
        self.email = email
        self.pick_results = pick_results or {}
        self.stashes: list[str] = []
        self.calls: list[tuple[object, ...]] = []
        self.closed = False

    def status(self) -> WorkingTreeStatus:
        self.calls.append(("status",))
        return self.working_status

    def is_clean(self) -> bool:
        self.calls.append(("is_clean",))
        return self.working_status.is_clean

    def create_stash(self, *, include_untracked: bool, message: str = "") -> str:
        sha = f"5ta5h{len(self.stashes)}aaaaaa"
        self.calls.append(("create_stash", include_untracked))
        self.stashes.insert(0, sha)
        self.working_status = CLEAN
        return sha

    def drop_stash(self, index: int) -> None:
        self.calls.append(("drop_stash", index))
        self.stashes.pop(index)

    def apply_stash(self, stash_ref: str) -> None:
        self.calls.append(("apply_stash", stash_ref))

    def log(self, ref: str) -> list[Commit]:
        self.calls.append(("log", ref))
        return list(self.logs.get(ref, []))

    def resolve_ref(self, name: str) -> Ref | None:
        self.calls.append(("resolve_ref", name))
        sha = self.refs.get(name)
        return Ref(name=name, sha=sha) if sha else None

    def is_valid_branch_name(self, name: str) -> bool:
        self.calls.append(("is_valid_branch_name", name))
        return ".." not in name and not any(c in name for c in " ~^:?*[\\")

    def current_branch(self) -> str:
        self.calls.append(("current_branch",))
        return self.branch

    def checkout_new_branch(self, name: str, start_ref: str) -> None:
        self.calls.append(("checkout_new_branch", name, start_ref))
        self.branch = name

    def checkout_existing(self, name: str) -> None:
        self.calls.append(("checkout_existing", name))
        self.branch = name

    def hard_reset(self, ref: str) -> None:
        self.calls.append(("hard_reset", ref))

    def cherry_pick(self, commit: Commit) -> CherryPickResult:
        self.calls.append(("cherry_pick", commit.sha))
        status = self.pick_results.get(commit.sha, CherryPickStatus.OK)
        if status == CherryPickStatus.CONFLICTING:
            self.working_status = WorkingTreeStatus(conflicting=("conflict.txt",))
        return CherryPickResult(status, "git says no" if status == CherryPickStatus.FAILED else "")

    def amend_commit(self) -> None:
        self.calls.append(("amend_commit",))

    def delete_branch(self, name: str, *, force: bool) -> None:
        self.calls.append(("delete_branch", name, force))

    def push(self, branch: str, *, remote: str = "origin") -> None:
        self.calls.append(("push", branch, remote))

    def user_email(self) -> str | None:
        self.calls.append(("user_email",))
        return self.email

    def close(self) -> None:
        self.closed = True

    def mutations(self) -> list[tuple[object, ...]]:
        reads = {"status", "is_clean", "log", "resolve_ref", "is_valid_branch_name", "current_branch", "user_email"}
        return [c for c in self.calls if c[0] not in reads]


def repo(name: str, git: FakeGit) -> Repo:
    return Repo(git=git, name=name)  # type: ignore[arg-type]
