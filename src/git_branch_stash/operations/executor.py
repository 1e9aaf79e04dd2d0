"""Git-backed repository operations."""

import logging
import subprocess
import tempfile
from pathlib import Path

from git_branch_stash.errors import (
    ConfigError,
    GitCommandError,
    RebaseConflictError,
    RefUpdateRejectedError,
    WorkingTreeConflictError,
)
from git_branch_stash.operations.adapter import BranchRef, RefUpdate, Repository

logger = logging.getLogger(__name__)

KEEP_ALIVE_PREFIX = "refs/branch-stash/keep/"


class GitExecutor(Repository):
    """Execute git commands with proper error handling."""

    def __init__(self, cwd: Path | None = None):
        self.cwd = cwd

    def run(
        self,
        args: list[str],
        check: bool = True,
        capture: bool = False,
        cwd: Path | None = None,
        input: str | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run a git command safely and always return a CompletedProcess."""
        cmd = ["git"] + args
        logger.debug("Running %s", " ".join(cmd))
        result = subprocess.run(
            cmd,
            cwd=cwd or self.cwd,
            check=check,
            capture_output=capture,
            text=True,
            input=input,
        )
        return result

    def _output(self, args: list[str], cwd: Path | None = None) -> str:
        """Run a git command, raising GitCommandError on failure."""
        result = self.run(args, check=False, capture=True, cwd=cwd)
        if result.returncode != 0:
            err = (result.stderr or result.stdout or "").strip()
            raise GitCommandError(f"git {' '.join(args)} failed: {err}")
        return result.stdout.strip()

    def _rev_parse(self, rev: str) -> str | None:
        result = self.run(
            ["rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}"],
            check=False,
            capture=True,
        )
        if result.returncode != 0 or not result.stdout.strip():
            return None
        return result.stdout.strip()

    def git_dir(self) -> Path:
        """Get the common git directory, shared between worktrees."""
        out = self._output(["rev-parse", "--path-format=absolute", "--git-common-dir"])
        return Path(out)

    def work_tree(self) -> Path | None:
        """Get the top of the work tree, or None for a bare repository."""
        result = self.run(["rev-parse", "--show-toplevel"], check=False, capture=True)
        if result.returncode != 0 or not result.stdout.strip():
            return None
        return Path(result.stdout.strip())

    def list_branches(self) -> list[BranchRef]:
        out = self._output(
            ["for-each-ref", "--format=%(refname) %(objectname)", "refs/heads/"]
        )
        branches = []
        for line in out.splitlines():
            if not line:
                continue
            refname, target = line.rsplit(" ", 1)
            branches.append(BranchRef(refname[len("refs/heads/") :], target))
        return branches

    def current_branch(self) -> str | None:
        result = self.run(
            ["symbolic-ref", "--quiet", "--short", "HEAD"], check=False, capture=True
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def resolve(self, name: str) -> str | None:
        return self._rev_parse(f"refs/heads/{name}")

    def summary(self, target: str) -> str | None:
        result = self.run(
            ["log", "-1", "--format=%s", target], check=False, capture=True
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        result = self.run(
            ["merge-base", "--is-ancestor", ancestor, descendant],
            check=False,
            capture=True,
        )
        return result.returncode == 0

    def working_tree_diff(self, against: str) -> str | None:
        """Record index and work tree changes as a dangling stash commit.

        ``git stash create`` diffs against HEAD, which is ``against`` whenever
        the checked-out branch is being captured.
        """
        out = self._output(["stash", "create"])
        if not out:
            return None
        logger.debug("Captured working tree %s on top of %s", out[:8], against[:8])
        return out

    def same_working_state(self, left: str, right: str) -> bool:
        if left == right:
            return True
        trees = []
        for state in (left, right):
            result = self.run(
                ["rev-parse", f"{state}^{{tree}}", f"{state}^2^{{tree}}"],
                check=False,
                capture=True,
            )
            if result.returncode != 0:
                return False
            trees.append(result.stdout.split())
        return trees[0] == trees[1]

    def apply_working_tree(self, state: str) -> None:
        """Apply a stash commit, trying to restore the index when possible."""
        result = self.run(["stash", "apply", "--index", state], check=False, capture=True)
        if result.returncode == 0:
            return
        result2 = self.run(["stash", "apply", state], check=False, capture=True)
        if result2.returncode != 0:
            err = (result2.stderr or result2.stdout or "").strip()
            raise WorkingTreeConflictError(
                f"Failed to apply working tree state {state[:8]}: {err}"
            )

    def upstream_of(self, branch: str, remote: str | None = None) -> str | None:
        result = self.run(
            ["for-each-ref", "--format=%(upstream)", f"refs/heads/{branch}"],
            check=False,
            capture=True,
        )
        upstream = result.stdout.strip() if result.returncode == 0 else ""
        if upstream:
            target = self._rev_parse(upstream)
            if target is not None:
                return target
        if remote:
            return self._rev_parse(f"refs/remotes/{remote}/{branch}")
        return None

    def rebase(self, branch: str, onto: str) -> str:
        """Rebase a branch tip in a throwaway worktree so no checkout is disturbed."""
        tip = self.resolve(branch)
        if tip is None:
            raise GitCommandError(f"Branch '{branch}' does not exist")

        if self.is_ancestor(onto, tip):
            return tip
        if self.is_ancestor(tip, onto):
            logger.debug("Fast-forwarding %s to %s", branch, onto[:8])
            return onto

        with tempfile.TemporaryDirectory(prefix="branch-stash-") as tmp:
            worktree = Path(tmp) / "rebase"
            self._output(["worktree", "add", "--detach", str(worktree), tip])
            try:
                result = self.run(
                    ["rebase", onto], check=False, capture=True, cwd=worktree
                )
                if result.returncode != 0:
                    self.run(["rebase", "--abort"], check=False, capture=True, cwd=worktree)
                    err = (result.stderr or result.stdout or "").strip()
                    raise RebaseConflictError(
                        branch, f"Rebase conflict syncing '{branch}': {err}"
                    )
                return self._output(["rev-parse", "HEAD"], cwd=worktree)
            finally:
                self.run(
                    ["worktree", "remove", "--force", str(worktree)],
                    check=False,
                    capture=True,
                )
                self.run(["worktree", "prune"], check=False, capture=True)

    def _update_refs(self, lines: list[str], names: tuple[str, ...]) -> None:
        result = self.run(
            ["update-ref", "--stdin"],
            check=False,
            capture=True,
            input="".join(f"{line}\n" for line in lines),
        )
        if result.returncode != 0:
            err = (result.stderr or result.stdout or "").strip()
            raise RefUpdateRejectedError(names, f"Ref update rejected: {err}")

    def atomic_update_refs(self, updates: list[RefUpdate]) -> None:
        """Move branches in one ``update-ref --stdin`` batch.

        When the checked-out branch moves, index and work tree follow with a
        two-way merge that carries local changes along; if they overlap the
        move, the batch is reverted.
        """
        if not updates:
            return
        names = tuple(u.name for u in updates)

        head = self.current_branch()
        head_update = next((u for u in updates if u.name == head), None)

        forward = []
        backward = []
        for u in updates:
            ref = f"refs/heads/{u.name}"
            if u.expected_old is None:
                forward.append(f"create {ref} {u.new}")
                backward.append(f"delete {ref} {u.new}")
            else:
                forward.append(f"update {ref} {u.new} {u.expected_old}")
                backward.append(f"update {ref} {u.expected_old} {u.new}")
        self._update_refs(forward, names)

        if head_update is not None and head_update.expected_old is not None:
            self.run(["update-index", "-q", "--refresh"], check=False, capture=True)
            result = self.run(
                ["read-tree", "-m", "-u", head_update.expected_old, head_update.new],
                check=False,
                capture=True,
            )
            if result.returncode != 0:
                logger.warning("Reverting ref updates, work tree could not follow")
                self._update_refs(backward, names)
                err = (result.stderr or result.stdout or "").strip()
                raise RefUpdateRejectedError(
                    (head_update.name,), f"Work tree could not be updated: {err}"
                )

    def keep_alive(self, target: str) -> None:
        self._output(["update-ref", f"{KEEP_ALIVE_PREFIX}{target}", target])

    def release(self, target: str) -> None:
        self.run(
            ["update-ref", "-d", f"{KEEP_ALIVE_PREFIX}{target}"],
            check=False,
            capture=True,
        )

    def list_kept(self) -> list[str]:
        out = self._output(["for-each-ref", "--format=%(refname)", KEEP_ALIVE_PREFIX])
        return [line[len(KEEP_ALIVE_PREFIX) :] for line in out.splitlines() if line]

    def get_config_entries(
        self,
        section: str,
        scope: str = "local",
        path: Path | None = None,
    ) -> list[tuple[str, str]]:
        """Get every ``(key, value)`` pair of a git config section in one scope.

        Args:
            section: Section name, e.g. ``branch-stash``
            scope: ``global``, ``local``, ``file``, or ``command`` for values
                given with ``git -c`` or ``GIT_CONFIG_COUNT``/``GIT_CONFIG_KEY_<n>``
            path: Config file to read when scope is ``file``

        Raises:
            ConfigError: If the config source cannot be read
        """
        pattern = f"^{section}\\."
        if scope == "file":
            args = ["config", "--file", str(path), "--get-regexp", pattern]
        elif scope == "command":
            args = ["config", "--show-scope", "--get-regexp", pattern]
        else:
            args = ["config", f"--{scope}", "--get-regexp", pattern]
        result = self.run(args, capture=True, check=False)

        # Exit code 1 means nothing in the section is set
        if result.returncode == 1:
            return []
        if result.returncode != 0:
            error_msg = result.stderr.strip() if result.stderr else "unknown error"
            raise ConfigError(f"Cannot read {scope} config: {error_msg}")

        entries = []
        for line in result.stdout.splitlines():
            if not line:
                continue
            if scope == "command":
                origin, _, line = line.partition("\t")
                if origin != "command":
                    continue
            key, _, value = line.partition(" ")
            entries.append((key, value))
        return entries

    def add_config_value(self, key: str, value: str) -> None:
        """Append a value to a multi-valued key in the repository config."""
        result = self.run(
            ["config", "--local", "--add", key, value], capture=True, check=False
        )
        if result.returncode != 0:
            error_msg = result.stderr.strip() if result.stderr else "unknown error"
            raise ConfigError(f"Cannot write config {key}: {error_msg}")
