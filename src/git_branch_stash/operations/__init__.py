from git_branch_stash.operations.adapter import BranchRef, RefUpdate, Repository
from git_branch_stash.operations.config import (
    ProtectedSet,
    RepoConfig,
    StashConfigManager,
)

from .executor import GitExecutor
from .snapshot import BranchRecord, Snapshot, SnapshotEngine
from .store import (
    ALL,
    OlderThan,
    PruneSelector,
    RelativeIndex,
    SnapshotId,
    SnapshotName,
    SnapshotStore,
    parse_age,
    parse_selector,
)
from .restorer import (
    BranchOutcome,
    BranchStatus,
    RestoreReport,
    SnapshotRestorer,
    WorkingTreeStatus,
)
