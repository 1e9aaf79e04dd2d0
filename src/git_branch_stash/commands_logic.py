"""Plain functions behind each command."""

from datetime import datetime, timezone
from typing import Iterable

from git_branch_stash.operations import (
    ALL,
    GitExecutor,
    PruneSelector,
    RelativeIndex,
    RepoConfig,
    RestoreReport,
    Snapshot,
    SnapshotEngine,
    SnapshotId,
    SnapshotRestorer,
    SnapshotStore,
    StashConfigManager,
    parse_age,
    parse_selector,
)


def _open(
    stack: str,
    executor: GitExecutor | None,
    protect: Iterable[str] = (),
) -> tuple[GitExecutor, RepoConfig, SnapshotStore]:
    executor = executor or GitExecutor()
    config = StashConfigManager(executor).load(protect)
    store = SnapshotStore.for_repo(executor, stack)
    return executor, config, store


def cmd_push(
    stack: str,
    message: str | None = None,
    protect: Iterable[str] = (),
    executor: GitExecutor | None = None,
) -> Snapshot:
    """Capture every local branch into a new snapshot."""
    executor, config, store = _open(stack, executor, protect)
    return SnapshotEngine(executor, store, config).capture(message)


def cmd_list(stack: str, executor: GitExecutor | None = None) -> list[Snapshot]:
    """List snapshots, newest first."""
    executor = executor or GitExecutor()
    return SnapshotStore.for_repo(executor, stack).list()


def cmd_stacks(executor: GitExecutor | None = None) -> list[str]:
    """List snapshot stacks."""
    executor = executor or GitExecutor()
    return SnapshotStore.for_repo(executor).stacks()


def cmd_apply(
    stack: str,
    selector: str | None = None,
    dry_run: bool = False,
    protect: Iterable[str] = (),
    executor: GitExecutor | None = None,
) -> RestoreReport:
    """Restore branches from a snapshot."""
    executor, config, store = _open(stack, executor, protect)
    snapshot = store.find(parse_selector(selector) if selector else RelativeIndex(0))
    return SnapshotRestorer(executor, config).restore(snapshot, dry_run=dry_run)


def cmd_pop(
    stack: str,
    selector: str | None = None,
    executor: GitExecutor | None = None,
) -> RestoreReport:
    """Restore branches from a snapshot, then drop it if nothing failed."""
    executor, config, store = _open(stack, executor)
    snapshot = store.find(parse_selector(selector) if selector else RelativeIndex(0))
    report = SnapshotRestorer(executor, config).restore(snapshot)
    if report.ok:
        assert snapshot.id is not None, "Stored snapshots always have an id"
        store.prune(SnapshotId(snapshot.id))
        SnapshotEngine(executor, store, config).release_unreferenced()
    return report


def cmd_drop(
    stack: str,
    selector: str | None = None,
    older_than: str | None = None,
    executor: GitExecutor | None = None,
) -> list[Snapshot]:
    """Drop one snapshot, or every snapshot older than an age."""
    executor, config, store = _open(stack, executor)
    target: PruneSelector
    if older_than is not None:
        target = parse_age(older_than, datetime.now(timezone.utc))
    elif selector:
        target = parse_selector(selector)
    else:
        target = RelativeIndex(0)
    removed = store.prune(target)
    SnapshotEngine(executor, store, config).release_unreferenced()
    return removed


def cmd_clear(stack: str, executor: GitExecutor | None = None) -> list[Snapshot]:
    """Drop every snapshot in a stack."""
    executor, config, store = _open(stack, executor)
    removed = store.prune(ALL)
    SnapshotEngine(executor, store, config).release_unreferenced()
    return removed


def cmd_protect(globs: Iterable[str], executor: GitExecutor | None = None) -> list[str]:
    """Protect branch globs in the repository config, returning the newly added ones."""
    manager = StashConfigManager(executor or GitExecutor())
    return [glob for glob in globs if manager.protect(glob)]


def cmd_config(executor: GitExecutor | None = None) -> str:
    """Render the effective configuration."""
    return StashConfigManager(executor or GitExecutor()).load().render()
