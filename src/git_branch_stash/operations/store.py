"""On-disk snapshot log, one JSON file per snapshot."""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Literal

from git_branch_stash.errors import NotFoundError, StashError, StoreWriteError
from git_branch_stash.operations.adapter import Repository
from git_branch_stash.operations.snapshot import Snapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SnapshotId:
    value: int


@dataclass(frozen=True, slots=True)
class SnapshotName:
    value: str


@dataclass(frozen=True, slots=True)
class RelativeIndex:
    """0 is the most recent snapshot."""

    value: int


@dataclass(frozen=True, slots=True)
class OlderThan:
    cutoff: datetime


Selector = SnapshotId | SnapshotName | RelativeIndex
PruneSelector = Selector | OlderThan | Literal["all"]
ALL: Literal["all"] = "all"

_RELATIVE = re.compile(r"^@\{(\d+)\}$")
_AGE = re.compile(r"^(\d+)([smhdw])$")
_AGE_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days", "w": "weeks"}


def parse_selector(text: str) -> Selector:
    """Parse ``7``/``#7`` as an id, ``@{0}`` as a relative index, anything else as a name."""
    digits = text[1:] if text.startswith("#") else text
    if digits.isdigit():
        return SnapshotId(int(digits))
    match = _RELATIVE.match(text)
    if match:
        return RelativeIndex(int(match.group(1)))
    return SnapshotName(text)


def parse_age(text: str, now: datetime) -> OlderThan:
    """Parse an age such as ``12h`` or ``7d`` into a cutoff relative to ``now``."""
    match = _AGE.match(text.strip())
    if not match:
        raise StashError(f"Invalid age '{text}', expected e.g. 30m, 12h, 7d")
    amount, unit = match.groups()
    return OlderThan(now - timedelta(**{_AGE_UNITS[unit]: int(amount)}))


class SnapshotStore:
    """Append-only log of snapshots for one stack.

    Records are never rewritten: each snapshot is created once under a fresh
    id and only ever deleted afterwards.
    """

    DEFAULT_STACK = "default"
    DIRNAME = "branch-stash"
    MAX_ATTEMPTS = 10

    def __init__(self, base: Path, stack: str = DEFAULT_STACK):
        if not stack or "/" in stack or stack.startswith("."):
            raise StashError(f"Invalid stack name: {stack!r}")
        self.base = base
        self.stack = stack

    @classmethod
    def for_repo(cls, repo: Repository, stack: str = DEFAULT_STACK) -> "SnapshotStore":
        return cls(repo.git_dir() / cls.DIRNAME, stack)

    @property
    def path(self) -> Path:
        return self.base / self.stack

    def _file(self, snapshot_id: int) -> Path:
        return self.path / f"{snapshot_id}.json"

    def _ids(self) -> list[int]:
        if not self.path.is_dir():
            return []
        return [int(p.stem) for p in self.path.glob("*.json") if p.stem.isdigit()]

    def _load(self) -> tuple[dict[int, Snapshot], dict[str, list[int]]]:
        """Read every record, indexed by id and by name."""
        records: dict[int, Snapshot] = {}
        by_name: dict[str, list[int]] = {}
        for snapshot_id in self._ids():
            path = self._file(snapshot_id)
            try:
                snapshot = Snapshot.from_dict(json.loads(path.read_text(encoding="utf-8")))
            except (OSError, ValueError, KeyError, TypeError, StashError) as e:
                logger.error("Failed to load snapshot %s: %s", path, e)
                continue
            if snapshot.id != snapshot_id:
                logger.error("Snapshot %s claims id %s, ignoring", path, snapshot.id)
                continue
            records[snapshot_id] = snapshot
            by_name.setdefault(snapshot.name, []).append(snapshot_id)
        return records, by_name

    def _write_new(self, snapshot: Snapshot) -> bool:
        """Durably create the record file; False if its id is already taken."""
        content = json.dumps(snapshot.to_dict(), indent=2)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.path), prefix=".snapshot.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            try:
                os.link(tmp_path, self._file(snapshot.id))
            except FileExistsError:
                return False
            return True
        finally:
            Path(tmp_path).unlink(missing_ok=True)

    def append(self, snapshot: Snapshot) -> Snapshot:
        """Store a snapshot under the next free id.

        Raises:
            StoreWriteError: If the record cannot be written
        """
        try:
            self.path.mkdir(parents=True, exist_ok=True)
            for _ in range(self.MAX_ATTEMPTS):
                ids = self._ids()
                stored = snapshot.with_id(max(ids) + 1 if ids else 0)
                if self._write_new(stored):
                    logger.debug("Wrote %s", self._file(stored.id))
                    return stored
                logger.debug("Snapshot id %d was taken concurrently, retrying", stored.id)
        except OSError as e:
            raise StoreWriteError(f"Cannot write snapshot to {self.path}: {e}") from e
        raise StoreWriteError(f"Could not allocate a snapshot id in {self.path}")

    def list(self) -> list[Snapshot]:
        """All snapshots, newest first."""
        records, _ = self._load()
        return [records[i] for i in sorted(records, reverse=True)]

    def find(self, selector: Selector) -> Snapshot:
        """Resolve a selector to one snapshot.

        Raises:
            NotFoundError: If nothing matches
        """
        records, by_name = self._load()

        if isinstance(selector, SnapshotId):
            if selector.value in records:
                return records[selector.value]
            raise NotFoundError(f"No snapshot #{selector.value} in stack '{self.stack}'")

        if isinstance(selector, SnapshotName):
            ids = by_name.get(selector.value)
            if ids:
                return records[max(ids)]
            raise NotFoundError(f"No snapshot named '{selector.value}' in stack '{self.stack}'")

        ordered = sorted(records, reverse=True)
        if 0 <= selector.value < len(ordered):
            return records[ordered[selector.value]]
        raise NotFoundError(f"No snapshot @{{{selector.value}}} in stack '{self.stack}'")

    def _remove(self, snapshots: list[Snapshot]) -> list[Snapshot]:
        try:
            for snapshot in snapshots:
                self._file(snapshot.id).unlink(missing_ok=True)
                logger.info("Dropped snapshot #%d '%s'", snapshot.id, snapshot.name)
        except OSError as e:
            raise StoreWriteError(f"Cannot remove snapshot from {self.path}: {e}") from e
        return snapshots

    def prune(self, selector: PruneSelector) -> list[Snapshot]:
        """Remove matching snapshots and return them.

        Raises:
            NotFoundError: If a selector other than ``all`` matches nothing
        """
        if selector == ALL:
            removed = self._remove(self.list())
            if self.path.is_dir() and not any(self.path.iterdir()):
                self.path.rmdir()
            return removed

        if isinstance(selector, OlderThan):
            matches = [s for s in self.list() if s.created_at < selector.cutoff]
            if not matches:
                raise NotFoundError(
                    f"No snapshot older than {selector.cutoff:%Y-%m-%d %H:%M:%S} "
                    f"in stack '{self.stack}'"
                )
            return self._remove(matches)

        return self._remove([self.find(selector)])

    def trim(self, capacity: int) -> list[Snapshot]:
        """Drop the oldest snapshots beyond ``capacity``."""
        return self._remove(self.list()[capacity:])

    def stacks(self) -> list[str]:
        """Names of every stack stored next to this one."""
        if not self.base.is_dir():
            return []
        return sorted(p.name for p in self.base.iterdir() if p.is_dir())

    def referenced_objects(self) -> set[str]:
        """Commits needed by snapshots in any stack."""
        found: set[str] = set()
        for stack in self.stacks():
            for snapshot in SnapshotStore(self.base, stack).list():
                found |= snapshot.objects()
        return found
