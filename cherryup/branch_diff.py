"""Commit-set comparison between two refs.

`diff(git, from_ref, to_ref)` answers "which commits of `from_ref` still have to be replayed
onto `to_ref`?". Commit hashes change when a commit is cherry-picked, so equivalence is
decided by `Commit.fingerprint` (author time plus subject line) instead of identity:

1. fingerprint every commit reachable from `to_ref`;
2. walk the history of `from_ref` in the order the gateway returns it (newest first);
3. keep the commits whose fingerprint is not on `to_ref`;
4. drop merge commits, which cannot be replayed one by one.

The result keeps the gateway's newest-first order. Callers that replay commits must sort
them chronologically themselves.
"""

from __future__ import annotations

from typing import Protocol

from .git_ops import Commit


class CommitLog(Protocol):
    def log(self, ref: str) -> list[Commit]: ...


def diff(git: CommitLog, from_ref: str, to_ref: str) -> list[Commit]:
    in_to = {commit.fingerprint for commit in git.log(to_ref)}
    return [commit for commit in git.log(from_ref) if commit.fingerprint not in in_to and not commit.is_merge]
