"""Repository capabilities consumed by the snapshot and restore engines.

Architecture:
- Repository: abstract interface over a version-controlled working copy
- GitExecutor: production implementation shelling out to git
- Tests inject an in-memory implementation with the same contract

Conflicts and rejections are raised as exceptions from ``git_branch_stash.errors``;
callers decide whether they are fatal.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class BranchRef:
    """A local branch and the commit it points to."""

    name: str
    target: str


@dataclass(frozen=True, slots=True)
class RefUpdate:
    """One entry of an atomic ref update batch.

    ``expected_old`` is None when the branch must not exist yet.
    """

    name: str
    expected_old: str | None
    new: str


class Repository(ABC):
    """Abstract interface for repository operations."""

    @abstractmethod
    def git_dir(self) -> Path:
        """Directory holding repository-private state."""
        ...

    @abstractmethod
    def list_branches(self) -> list[BranchRef]:
        """List local branches in enumeration order."""
        ...

    @abstractmethod
    def current_branch(self) -> str | None:
        """Get the checked-out branch, or None on a detached HEAD."""
        ...

    @abstractmethod
    def resolve(self, name: str) -> str | None:
        """Get the commit a local branch points to, or None if it doesn't exist."""
        ...

    @abstractmethod
    def summary(self, target: str) -> str | None:
        """Get the one-line subject of a commit."""
        ...

    @abstractmethod
    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        """Check whether ``ancestor`` is reachable from ``descendant`` (or equal)."""
        ...

    @abstractmethod
    def working_tree_diff(self, against: str) -> str | None:
        """Capture index/work tree modifications relative to ``against``.

        Returns an opaque state token, or None when there is nothing to capture.
        """
        ...

    @abstractmethod
    def same_working_state(self, left: str, right: str) -> bool:
        """Check whether two captured states hold identical content."""
        ...

    @abstractmethod
    def apply_working_tree(self, state: str) -> None:
        """Re-apply a captured state onto the work tree.

        Raises:
            WorkingTreeConflictError: If local changes would be overwritten
        """
        ...

    @abstractmethod
    def upstream_of(self, branch: str, remote: str | None = None) -> str | None:
        """Get the remote-tracking counterpart of a branch.

        The branch's own upstream wins; ``remote`` is the fallback remote name.
        """
        ...

    @abstractmethod
    def rebase(self, branch: str, onto: str) -> str:
        """Rebase the current tip of ``branch`` onto ``onto`` without moving the ref.

        Returns:
            The commit the rebased branch would point to

        Raises:
            RebaseConflictError: If the rebase stops on conflicts
        """
        ...

    @abstractmethod
    def atomic_update_refs(self, updates: list[RefUpdate]) -> None:
        """Apply all updates or none of them.

        Raises:
            RefUpdateRejectedError: If any update is refused
        """
        ...

    @abstractmethod
    def keep_alive(self, target: str) -> None:
        """Keep an object reachable for garbage collection purposes."""
        ...

    @abstractmethod
    def release(self, target: str) -> None:
        """Drop a reference created by ``keep_alive``."""
        ...

    @abstractmethod
    def list_kept(self) -> list[str]:
        """List objects currently held by ``keep_alive``."""
        ...
