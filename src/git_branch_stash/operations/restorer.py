"""Restore branches from a snapshot."""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable

from git_branch_stash.errors import (
    ConcurrentModificationError,
    RebaseConflictError,
    RefUpdateRejectedError,
    StashError,
    WorkingTreeConflictError,
)
from git_branch_stash.operations.adapter import RefUpdate, Repository
from git_branch_stash.operations.config import ProtectedSet, RepoConfig
from git_branch_stash.operations.snapshot import Snapshot

logger = logging.getLogger(__name__)


class BranchStatus(str, Enum):
    UNCHANGED = "unchanged"
    UPDATED = "updated"
    CREATED = "created"
    PROTECTED_SKIPPED = "protected-skipped"
    REBASE_CONFLICT = "rebase-conflict"
    REJECTED = "rejected"


class WorkingTreeStatus(str, Enum):
    NOT_APPLICABLE = "not-applicable"
    PENDING = "pending"
    APPLIED = "applied"
    ALREADY_PRESENT = "already-present"
    CONFLICT = "conflict"


@dataclass(frozen=True, slots=True)
class BranchOutcome:
    """What restore did, or would do, to one branch."""

    name: str
    status: BranchStatus
    before: str | None
    after: str | None
    detail: str = ""


@dataclass(frozen=True)
class RestoreReport:
    """Every per-branch outcome of one restore.

    Callers decide success from ``ok``; partial protection skips are not failures.
    """

    snapshot_id: int | None
    dry_run: bool
    outcomes: tuple[BranchOutcome, ...]
    updates: tuple[RefUpdate, ...]
    applied: tuple[RefUpdate, ...] = ()
    working_tree: WorkingTreeStatus = WorkingTreeStatus.NOT_APPLICABLE
    working_tree_detail: str = ""
    rejected: ConcurrentModificationError | None = None
    conflicts: tuple[StashError, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return not self.conflicts and self.rejected is None

    def outcome(self, name: str) -> BranchOutcome:
        return next(o for o in self.outcomes if o.name == name)

    def by_status(self, status: BranchStatus) -> list[BranchOutcome]:
        return [o for o in self.outcomes if o.status == status]


def plan_restore(
    snapshot: Snapshot,
    live: dict[str, str],
    synced: dict[str, str],
    conflicts: dict[str, RebaseConflictError],
    protected: ProtectedSet,
    is_ancestor: Callable[[str, str], bool],
) -> tuple[list[BranchOutcome], list[RefUpdate]]:
    """Compute outcomes and the ref batch without touching the repository.

    Args:
        snapshot: Snapshot being restored
        live: Current branch targets
        synced: Protected branch tips after syncing with their upstream
        conflicts: Protected branches whose sync failed
        protected: Live protection policy
        is_ancestor: Ancestry query ``(ancestor, descendant) -> bool``
    """
    outcomes: list[BranchOutcome] = []
    updates: list[RefUpdate] = []

    for record in snapshot.branches:
        before = live.get(record.name)

        if record.name in conflicts:
            outcomes.append(
                BranchOutcome(
                    record.name,
                    BranchStatus.REBASE_CONFLICT,
                    before,
                    before,
                    str(conflicts[record.name]),
                )
            )
            continue

        if before is None:
            outcomes.append(
                BranchOutcome(record.name, BranchStatus.CREATED, None, record.target)
            )
            updates.append(RefUpdate(record.name, None, record.target))
            continue

        if protected.is_protected(record.name):
            tip = synced.get(record.name, before)
            detail = ""
            if record.target == tip or is_ancestor(tip, record.target):
                after = record.target
                status = BranchStatus.UNCHANGED if after == before else BranchStatus.UPDATED
            else:
                # Forward-only: keep the synced tip rather than drop newer history
                after = tip
                status = BranchStatus.PROTECTED_SKIPPED
                detail = f"{record.target[:8]} is not a descendant of {tip[:8]}"
            if after != before:
                updates.append(RefUpdate(record.name, before, after))
            outcomes.append(BranchOutcome(record.name, status, before, after, detail))
            continue

        if before == record.target:
            outcomes.append(
                BranchOutcome(record.name, BranchStatus.UNCHANGED, before, before)
            )
        else:
            outcomes.append(
                BranchOutcome(record.name, BranchStatus.UPDATED, before, record.target)
            )
            updates.append(RefUpdate(record.name, before, record.target))

    return outcomes, updates


class SnapshotRestorer:
    """Restore branches from a snapshot.

    Strategy:
    - Partition branches by the live protection policy
    - Sync protected branches with their upstream (per-branch, best effort)
    - Plan ref updates; protected branches only ever move forward
    - Apply every update in one atomic batch, or none of them
    - Re-apply captured working-tree changes on the checked-out branch
    """

    def __init__(self, repo: Repository, config: RepoConfig):
        self.repo = repo
        self.config = config

    def _sync(
        self, names: list[str], live: dict[str, str]
    ) -> tuple[dict[str, str], dict[str, RebaseConflictError]]:
        synced: dict[str, str] = {}
        conflicts: dict[str, RebaseConflictError] = {}
        for name in names:
            if name not in live:
                continue
            upstream = self.repo.upstream_of(name, self.config.pull_remote)
            if upstream is None:
                logger.debug("No upstream for protected branch %s", name)
                continue
            try:
                synced[name] = self.repo.rebase(name, onto=upstream)
            except RebaseConflictError as e:
                logger.warning("Skipping %s: %s", name, e)
                conflicts[name] = e
                continue
            if synced[name] != live[name]:
                logger.info("Synced %s onto %s", name, upstream[:8])
        return synced, conflicts

    def _restore_working_tree(
        self, snapshot: Snapshot, dry_run: bool
    ) -> tuple[WorkingTreeStatus, str, WorkingTreeConflictError | None]:
        record = snapshot.current
        if record is None or record.working_state is None:
            return WorkingTreeStatus.NOT_APPLICABLE, "", None

        current = self.repo.current_branch()
        if current != record.name:
            return (
                WorkingTreeStatus.NOT_APPLICABLE,
                f"changes were captured on '{record.name}', not '{current}'",
                None,
            )

        head = self.repo.resolve(record.name)
        present = self.repo.working_tree_diff(against=head) if head else None
        if present is not None and self.repo.same_working_state(present, record.working_state):
            return WorkingTreeStatus.ALREADY_PRESENT, "", None
        if dry_run:
            return WorkingTreeStatus.PENDING, "", None

        try:
            self.repo.apply_working_tree(record.working_state)
        except WorkingTreeConflictError as e:
            logger.warning("%s", e)
            return WorkingTreeStatus.CONFLICT, str(e), e
        logger.info("Restored working tree changes on %s", record.name)
        return WorkingTreeStatus.APPLIED, "", None

    def restore(self, snapshot: Snapshot, dry_run: bool = False) -> RestoreReport:
        """Move branches back to the state recorded in ``snapshot``."""
        live = {b.name: b.target for b in self.repo.list_branches()}
        protected, _ = self.config.protected.partition(b.name for b in snapshot.branches)

        synced, rebase_conflicts = self._sync(protected, live)
        outcomes, updates = plan_restore(
            snapshot,
            live,
            synced,
            rebase_conflicts,
            self.config.protected,
            self.repo.is_ancestor,
        )
        for outcome in outcomes:
            logger.debug("%s: %s", outcome.name, outcome.status.value)

        conflicts: list[StashError] = list(rebase_conflicts.values())
        report = RestoreReport(
            snapshot_id=snapshot.id,
            dry_run=dry_run,
            outcomes=tuple(outcomes),
            updates=tuple(updates),
            conflicts=tuple(conflicts),
        )
        if dry_run:
            status, detail, _ = self._restore_working_tree(snapshot, dry_run=True)
            return replace(report, working_tree=status, working_tree_detail=detail)

        try:
            self.repo.atomic_update_refs(updates)
        except RefUpdateRejectedError as e:
            error = ConcurrentModificationError(
                f"Restore rejected, no branch was changed: {e}"
            )
            error.__cause__ = e
            logger.error("%s", error)
            rejected_names = {u.name for u in updates}
            outcomes = [
                replace(o, status=BranchStatus.REJECTED, after=o.before, detail=str(e))
                if o.name in rejected_names
                else o
                for o in outcomes
            ]
            return replace(
                report,
                outcomes=tuple(outcomes),
                rejected=error,
                working_tree_detail="ref updates were rejected",
            )

        for update in updates:
            logger.info(
                "Moved %s %s -> %s",
                update.name,
                update.expected_old[:8] if update.expected_old else "(new)",
                update.new[:8],
            )

        status, detail, wt_error = self._restore_working_tree(snapshot, dry_run=False)
        if wt_error is not None:
            conflicts.append(wt_error)
        return replace(
            report,
            applied=tuple(updates),
            working_tree=status,
            working_tree_detail=detail,
            conflicts=tuple(conflicts),
        )
