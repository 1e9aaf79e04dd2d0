import subprocess
from pathlib import Path
from typing import Generator

import pytest
from click.testing import CliRunner

from fakes import FakeRepository
from git_branch_stash.operations import GitExecutor, RepoConfig, SnapshotStore


def git(repo: Path, *args: str) -> str:
    """Run git in ``repo`` and return stripped stdout."""
    result = subprocess.run(
        ["git", *args], cwd=repo, check=True, capture_output=True, text=True
    )
    return result.stdout.strip()


def commit_file(repo: Path, name: str, content: str, message: str) -> str:
    (repo / name).write_text(content)
    git(repo, "add", name)
    git(repo, "commit", "-m", message)
    return git(repo, "rev-parse", "HEAD")


@pytest.fixture(autouse=True)
def isolated_git_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep the user's own git config out of every test."""
    global_config = tmp_path / "global.gitconfig"
    global_config.write_text("")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(global_config))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    return global_config


@pytest.fixture
def temp_git_repo(tmp_path: Path) -> Generator[Path, None, None]:
    """Create a temporary git repository with a main branch."""
    repo = tmp_path / "repo"
    repo.mkdir()
    subprocess.run(["git", "init"], cwd=repo, check=True, capture_output=True)
    subprocess.run(["git", "config", "user.name", "Test User"], cwd=repo, check=True)
    subprocess.run(
        ["git", "config", "user.email", "test@example.com"], cwd=repo, check=True
    )
    subprocess.run(["git", "config", "commit.gpgsign", "false"], cwd=repo, check=True)

    commit_file(repo, "README.md", "# Test Repo\n", "Initial commit")

    cur = git(repo, "symbolic-ref", "--short", "HEAD")
    if cur != "main":
        git(repo, "branch", "-m", cur, "main")

    yield repo


@pytest.fixture
def temp_git_repo_with_branches(temp_git_repo: Path) -> dict[str, Path | list[str]]:
    """Create a temporary repo with feature branches forked from main."""
    branches = ["b1", "b2"]

    for branch in branches:
        git(temp_git_repo, "checkout", "-q", "-b", branch, "main")
        commit_file(temp_git_repo, f"{branch}.txt", f"Content for {branch}\n", f"Add {branch}")
    git(temp_git_repo, "checkout", "-q", "main")

    return {"repo": temp_git_repo, "branches": branches}


@pytest.fixture
def executor(temp_git_repo: Path) -> GitExecutor:
    return GitExecutor(cwd=temp_git_repo)


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click test runner."""
    return CliRunner()


@pytest.fixture
def fake_repo(tmp_path: Path) -> FakeRepository:
    git_dir = tmp_path / "fake.git"
    git_dir.mkdir()
    return FakeRepository(git_dir)


@pytest.fixture
def fake_store(fake_repo: FakeRepository) -> SnapshotStore:
    return SnapshotStore.for_repo(fake_repo)


@pytest.fixture
def no_config() -> RepoConfig:
    return RepoConfig()
