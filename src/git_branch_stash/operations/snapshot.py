"""Snapshot data model and capture."""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Iterable

from git_branch_stash.errors import StashError, StoreWriteError
from git_branch_stash.operations.adapter import Repository
from git_branch_stash.operations.config import RepoConfig

if TYPE_CHECKING:
    from git_branch_stash.operations.store import SnapshotStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BranchRecord:
    """One branch's captured state."""

    name: str
    target: str
    is_current: bool = False
    working_state: str | None = None
    protected: bool = False
    summary: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "target": self.target,
            "is_current": self.is_current,
            "protected": self.protected,
        }
        if self.working_state is not None:
            data["working_state"] = self.working_state
        if self.summary is not None:
            data["summary"] = self.summary
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BranchRecord":
        return cls(
            name=data["name"],
            target=data["target"],
            is_current=bool(data.get("is_current", False)),
            working_state=data.get("working_state"),
            protected=bool(data.get("protected", False)),
            summary=data.get("summary"),
        )


@dataclass(frozen=True, slots=True)
class Snapshot:
    """One stash entry. ``id`` is None until the store assigns it."""

    name: str
    created_at: datetime
    branches: tuple[BranchRecord, ...] = ()
    id: int | None = None

    def __post_init__(self) -> None:
        names = [b.name for b in self.branches]
        if len(names) != len(set(names)):
            raise StashError(f"Duplicate branch names in snapshot '{self.name}'")
        if sum(1 for b in self.branches if b.is_current) > 1:
            raise StashError(f"More than one current branch in snapshot '{self.name}'")

    def with_id(self, snapshot_id: int) -> "Snapshot":
        return replace(self, id=snapshot_id)

    @property
    def current(self) -> BranchRecord | None:
        return next((b for b in self.branches if b.is_current), None)

    def objects(self) -> set[str]:
        """Commits this snapshot needs to stay reachable."""
        found = set()
        for branch in self.branches:
            found.add(branch.target)
            if branch.working_state is not None:
                found.add(branch.working_state)
        return found

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at.isoformat(),
            "branches": [b.to_dict() for b in self.branches],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Snapshot":
        return cls(
            id=data["id"],
            name=data["name"],
            created_at=datetime.fromisoformat(data["created_at"]),
            branches=tuple(BranchRecord.from_dict(b) for b in data.get("branches", [])),
        )


class SnapshotEngine:
    """Capture branch state into the snapshot store."""

    def __init__(self, repo: Repository, store: "SnapshotStore", config: RepoConfig):
        self.repo = repo
        self.store = store
        self.config = config

    def snapshot(self, name: str | None = None, now: datetime | None = None) -> Snapshot:
        """Read the repository into an unsaved Snapshot."""
        current = self.repo.current_branch()
        if current is None:
            logger.warning("HEAD is detached, no current branch will be recorded")

        protected = self.config.protected
        records = []
        for branch in self.repo.list_branches():
            is_current = branch.name == current
            working_state = None
            if is_current:
                working_state = self.repo.working_tree_diff(against=branch.target)
                if working_state is not None:
                    logger.info("Working tree is dirty, capturing its changes")
            records.append(
                BranchRecord(
                    name=branch.name,
                    target=branch.target,
                    is_current=is_current,
                    working_state=working_state,
                    protected=protected.is_protected(branch.name),
                    summary=self.repo.summary(branch.target),
                )
            )

        return Snapshot(
            name=name or f"WIP on {current or 'HEAD'}",
            created_at=now or datetime.now(timezone.utc),
            branches=tuple(records),
        )

    def capture(self, name: str | None = None, now: datetime | None = None) -> Snapshot:
        """Capture all local branches and append them as a new snapshot."""
        snapshot = self.snapshot(name, now)

        added = sorted(snapshot.objects() - set(self.repo.list_kept()))
        for target in added:
            self.repo.keep_alive(target)

        try:
            stored = self.store.append(snapshot)
        except StoreWriteError:
            for target in added:
                self.repo.release(target)
            raise
        logger.info(
            "Saved snapshot #%d '%s' (%d branches)",
            stored.id,
            stored.name,
            len(stored.branches),
        )

        capacity = self.config.effective_capacity()
        if capacity is not None and self.store.trim(capacity):
            self.release_unreferenced()
        return stored

    def release_unreferenced(self) -> list[str]:
        """Drop keep-alive references no stored snapshot needs anymore."""
        referenced = self.store.referenced_objects()
        released = []
        for target in self.repo.list_kept():
            if target not in referenced:
                self.repo.release(target)
                released.append(target)
        if released:
            logger.debug("Released %d unreferenced objects", len(released))
        return released


def describe(snapshot: Snapshot, width: int = 7) -> Iterable[str]:
    """Yield display lines for one snapshot."""
    yield f"#{snapshot.id} {snapshot.name} ({snapshot.created_at:%Y-%m-%d %H:%M:%S})"
    for branch in snapshot.branches:
        marker = "*" if branch.is_current else "-"
        flags = " [protected]" if branch.protected else ""
        if branch.working_state is not None:
            flags += " [dirty]"
        summary = f" {branch.summary}" if branch.summary else ""
        yield f"  {marker} {branch.name}: {branch.target[:width]}{summary}{flags}"
