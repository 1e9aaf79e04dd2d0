"""Custom exceptions for git-branch-stash."""


class StashError(Exception):
    """Base exception for all branch-stash errors."""

    exit_code: int = 1


class ConfigError(StashError):
    """Raised when configuration is malformed or unreadable."""

    exit_code: int = 2


class NotFoundError(StashError):
    """Raised when a selector matches no snapshot."""

    exit_code: int = 2


class StoreWriteError(StashError):
    """Raised when a snapshot cannot be written to disk."""

    pass


class GitCommandError(StashError):
    """Raised when a git command fails unexpectedly."""

    pass


class RebaseConflictError(StashError):
    """Raised when syncing a branch with its upstream hits conflicts."""

    exit_code: int = 3

    def __init__(self, branch: str, message: str = ""):
        self.branch = branch
        super().__init__(message or f"Rebase conflict on '{branch}'")


class WorkingTreeConflictError(StashError):
    """Raised when captured working-tree changes cannot be re-applied."""

    exit_code: int = 3


class RefUpdateRejectedError(StashError):
    """Raised by the repository when a ref update batch is refused."""

    exit_code: int = 3

    def __init__(self, names: tuple[str, ...], message: str = ""):
        self.names = names
        super().__init__(message or f"Ref update rejected: {', '.join(names)}")


class ConcurrentModificationError(StashError):
    """Raised when a restore batch was rejected as a whole."""

    exit_code: int = 3
