"""In-memory repository for engine tests.

Commits are opaque ids with parent links; branches, HEAD, work tree and
remote-tracking refs are plain attributes that tests set up directly.
"""

from pathlib import Path
from typing import Callable

from git_branch_stash.errors import (
    RebaseConflictError,
    RefUpdateRejectedError,
    WorkingTreeConflictError,
)
from git_branch_stash.operations.adapter import BranchRef, RefUpdate, Repository


class FakeRepository(Repository):
    def __init__(self, git_dir: Path):
        self._git_dir = git_dir
        self.parents: dict[str, tuple[str, ...]] = {}
        self.branches: dict[str, str] = {}
        self.head: str | None = None
        self.working: str | None = None
        self.upstreams: dict[str, str] = {}
        self.remote_branches: dict[str, str] = {}
        self.rebase_conflicts: set[str] = set()
        self.kept: set[str] = set()
        self.batches: list[list[RefUpdate]] = []
        self.before_update: Callable[[], None] | None = None
        self._counter = 0

    # Setup helpers

    def commit(self, *parents: str, sha: str | None = None) -> str:
        if sha is None:
            self._counter += 1
            sha = f"{self._counter:040x}"
        self.parents[sha] = parents
        return sha

    def checkout(self, name: str | None) -> None:
        self.head = name

    # Repository interface

    def git_dir(self) -> Path:
        return self._git_dir

    def list_branches(self) -> list[BranchRef]:
        return [BranchRef(name, target) for name, target in sorted(self.branches.items())]

    def current_branch(self) -> str | None:
        return self.head

    def resolve(self, name: str) -> str | None:
        return self.branches.get(name)

    def summary(self, target: str) -> str | None:
        return f"commit {target[-4:]}"

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        pending = [descendant]
        seen = set()
        while pending:
            sha = pending.pop()
            if sha == ancestor:
                return True
            if sha in seen:
                continue
            seen.add(sha)
            pending.extend(self.parents.get(sha, ()))
        return False

    def working_tree_diff(self, against: str) -> str | None:
        return self.working

    def same_working_state(self, left: str, right: str) -> bool:
        return left == right

    def apply_working_tree(self, state: str) -> None:
        if self.working is not None and self.working != state:
            raise WorkingTreeConflictError(
                f"Local changes {self.working} would be overwritten by {state}"
            )
        self.working = state

    def upstream_of(self, branch: str, remote: str | None = None) -> str | None:
        if branch in self.upstreams:
            return self.upstreams[branch]
        if remote:
            return self.remote_branches.get(f"{remote}/{branch}")
        return None

    def rebase(self, branch: str, onto: str) -> str:
        tip = self.branches[branch]
        if self.is_ancestor(onto, tip):
            return tip
        if self.is_ancestor(tip, onto):
            return onto
        if branch in self.rebase_conflicts:
            raise RebaseConflictError(branch, f"Rebase conflict syncing '{branch}'")
        return self.commit(onto)

    def atomic_update_refs(self, updates: list[RefUpdate]) -> None:
        if self.before_update is not None:
            self.before_update()
        stale = tuple(u.name for u in updates if self.branches.get(u.name) != u.expected_old)
        if stale:
            raise RefUpdateRejectedError(stale)
        for update in updates:
            self.branches[update.name] = update.new
        self.batches.append(list(updates))

    def keep_alive(self, target: str) -> None:
        self.kept.add(target)

    def release(self, target: str) -> None:
        self.kept.discard(target)

    def list_kept(self) -> list[str]:
        return sorted(self.kept)
