"""Configuration management for git-branch-stash."""

import logging
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from typing import Iterable

from git_branch_stash.errors import ConfigError
from git_branch_stash.operations.executor import GitExecutor

logger = logging.getLogger(__name__)

SECTION = "branch-stash"
PROTECTED_FIELD = f"{SECTION}.protected-branches"
PULL_REMOTE_FIELD = f"{SECTION}.pull-remote"
CAPACITY_FIELD = f"{SECTION}.capacity"


def validate_glob(glob: str) -> str:
    """Reject globs that fnmatch would silently treat as literals."""
    if not glob:
        raise ConfigError("Empty protected-branch glob")

    i = 0
    while i < len(glob):
        if glob[i] != "[":
            i += 1
            continue
        j = i + 1
        if j < len(glob) and glob[j] == "!":
            j += 1
        # A leading ] is part of the class
        if j < len(glob) and glob[j] == "]":
            j += 1
        close = glob.find("]", j)
        if close == -1:
            raise ConfigError(f"Unterminated character class in glob: {glob}")
        i = close + 1
    return glob


def _union(*groups: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for group in groups:
        for item in group:
            seen.setdefault(item, None)
    return tuple(seen)


@dataclass(frozen=True, slots=True)
class ProtectedSet:
    """Globs naming branches that restore must never force-move."""

    globs: tuple[str, ...] = ()

    def is_protected(self, branch: str) -> bool:
        return any(fnmatchcase(branch, glob) for glob in self.globs)

    def partition(self, names: Iterable[str]) -> tuple[list[str], list[str]]:
        """Split names into ``(protected, ordinary)``, keeping their order."""
        protected: list[str] = []
        ordinary: list[str] = []
        for name in names:
            (protected if self.is_protected(name) else ordinary).append(name)
        return protected, ordinary


@dataclass(frozen=True, slots=True)
class RepoConfig:
    """Immutable configuration from one layer, or the merge of several."""

    protected_branches: tuple[str, ...] = field(default_factory=tuple)
    pull_remote: str | None = None
    capacity: int | None = None

    def update(self, other: "RepoConfig") -> "RepoConfig":
        """Layer ``other`` on top: globs accumulate, scalars override."""
        return RepoConfig(
            protected_branches=_union(self.protected_branches, other.protected_branches),
            pull_remote=other.pull_remote if other.pull_remote is not None else self.pull_remote,
            capacity=other.capacity if other.capacity is not None else self.capacity,
        )

    @property
    def protected(self) -> ProtectedSet:
        return ProtectedSet(self.protected_branches)

    def effective_capacity(self) -> int | None:
        """Maximum snapshots per stack, None when unlimited."""
        if not self.capacity:
            return None
        return self.capacity

    def render(self) -> str:
        """Render the config in git-config syntax."""
        key = PROTECTED_FIELD.split(".", 1)[1]
        lines = [f"[{SECTION}]"]
        for glob in self.protected_branches:
            lines.append(f"\t{key}={glob}")
        if self.pull_remote is not None:
            lines.append(f"\t{PULL_REMOTE_FIELD.split('.', 1)[1]}={self.pull_remote}")
        lines.append(f"\t{CAPACITY_FIELD.split('.', 1)[1]}={self.capacity or 0}")
        return "\n".join(lines) + "\n"


def parse_entries(entries: Iterable[tuple[str, str]]) -> RepoConfig:
    """Build one config layer from ``(key, value)`` pairs of a single scope."""
    protected: list[str] = []
    pull_remote: str | None = None
    capacity: int | None = None

    for key, value in entries:
        if key == PROTECTED_FIELD:
            protected.append(validate_glob(value))
        elif key == PULL_REMOTE_FIELD:
            pull_remote = value or None
        elif key == CAPACITY_FIELD:
            try:
                capacity = int(value)
            except ValueError:
                raise ConfigError(f"Invalid {CAPACITY_FIELD}: {value!r}")
            if capacity < 0:
                raise ConfigError(f"Invalid {CAPACITY_FIELD}: {value!r}")
        else:
            logger.warning("Unsupported config: %s=%s", key, value)

    return RepoConfig(
        protected_branches=tuple(protected),
        pull_remote=pull_remote,
        capacity=capacity,
    )


class StashConfigManager:
    """Resolve layered branch-stash settings from git config."""

    WORKDIR_CONFIG = ".gitconfig"

    def __init__(self, executor: GitExecutor):
        self.executor = executor

    def _layer(self, scope: str) -> RepoConfig:
        logger.debug("Loading %s config", scope)
        return parse_entries(self.executor.get_config_entries(SECTION, scope=scope))

    def _workdir_layer(self) -> RepoConfig:
        work_tree = self.executor.work_tree()
        if work_tree is None:
            return RepoConfig()
        path = work_tree / self.WORKDIR_CONFIG
        if not path.exists():
            return RepoConfig()
        logger.debug("Loading %s", path)
        return parse_entries(
            self.executor.get_config_entries(SECTION, scope="file", path=path)
        )

    def protect(self, glob: str) -> bool:
        """Persist a protected glob in the repository config.

        Returns:
            False if the glob was already present
        """
        validate_glob(glob)
        if glob in self._layer("local").protected_branches:
            logger.debug("Glob %s already protected", glob)
            return False
        self.executor.add_config_value(PROTECTED_FIELD, glob)
        logger.info("Protected %s", glob)
        return True

    def load(self, protect: Iterable[str] = ()) -> RepoConfig:
        """Resolve the effective config.

        Args:
            protect: Globs to protect for this invocation, persisted once every
                layer has parsed

        Raises:
            ConfigError: If any layer is malformed or unreadable
        """
        extra = tuple(validate_glob(glob) for glob in protect)
        layers = [
            self._layer("global"),
            self._workdir_layer(),
            self._layer("local"),
            self._layer("command"),
        ]

        for glob in extra:
            self.protect(glob)

        config = RepoConfig()
        for layer in layers:
            config = config.update(layer)
        return config.update(RepoConfig(protected_branches=extra))
