"""Tests for the click command surface."""

from shlex import split

import pytest
from pytest_check import check

from conftest import git
from git_branch_stash.cli import cli


@pytest.fixture
def repo(temp_git_repo_with_branches, monkeypatch):
    repo = temp_git_repo_with_branches["repo"]
    monkeypatch.chdir(repo)
    return repo


class TestPushAndList:
    def test_bare_invocation_pushes(self, runner, repo):
        """Test that running without a command takes a snapshot"""
        result = runner.invoke(cli, [])
        check(result.exit_code == 0)
        check("Saved snapshot #0 'WIP on main' (3 branches)" in result.output)

    def test_push_with_message(self, runner, repo):
        result = runner.invoke(cli, split("push -m 'before rebase'"))
        check(result.exit_code == 0)
        check("'before rebase'" in result.output)

    def test_list(self, runner, repo):
        runner.invoke(cli, split("push -m first"))
        runner.invoke(cli, split("push -m second"))

        result = runner.invoke(cli, ["list"])

        check(result.exit_code == 0)
        check(result.output.index("#1 second") < result.output.index("#0 first"))
        check("  * main:" in result.output)
        check("  - b1:" in result.output)

    def test_list_empty(self, runner, repo):
        result = runner.invoke(cli, split("list -s nothing"))
        check(result.exit_code == 0)
        check("No snapshots in stack 'nothing'" in result.output)

    def test_stacks(self, runner, repo):
        runner.invoke(cli, split("push -s alpha"))
        runner.invoke(cli, split("push -s beta"))

        result = runner.invoke(cli, ["stacks"])

        check(result.exit_code == 0)
        check(result.output.split() == ["alpha", "beta"])

    def test_outside_repository(self, runner, tmp_path, monkeypatch):
        outside = tmp_path / "outside"
        outside.mkdir()
        monkeypatch.chdir(outside)

        result = runner.invoke(cli, ["push"])

        check(result.exit_code != 0)
        check("Error" in result.output)


class TestApplyAndPop:
    def test_apply_restores_moved_branch(self, runner, repo):
        runner.invoke(cli, ["push"])
        b1 = git(repo, "rev-parse", "b1")
        git(repo, "branch", "-f", "b1", "main")

        result = runner.invoke(cli, ["apply"])

        check(result.exit_code == 0)
        check("Restored snapshot #0" in result.output)
        check("b1: updated" in result.output)
        check(git(repo, "rev-parse", "b1") == b1)

    def test_dry_run(self, runner, repo):
        runner.invoke(cli, ["push"])
        git(repo, "branch", "-f", "b1", "main")

        result = runner.invoke(cli, split("apply --dry-run"))

        check(result.exit_code == 0)
        check("Would restore snapshot #0" in result.output)
        check(git(repo, "rev-parse", "b1") == git(repo, "rev-parse", "main"))

    def test_apply_by_name(self, runner, repo):
        runner.invoke(cli, split("push -m keep"))
        runner.invoke(cli, split("push -m other"))

        result = runner.invoke(cli, split("apply keep"))

        check(result.exit_code == 0)
        check("Restored snapshot #0" in result.output)

    def test_unknown_selector(self, runner, repo):
        runner.invoke(cli, ["push"])
        result = runner.invoke(cli, split("apply '#9'"))
        check(result.exit_code == 2)
        check("No snapshot #9" in result.output)

    def test_protected_skip_is_reported(self, runner, repo):
        runner.invoke(cli, split("push -p main"))
        (repo / "new.txt").write_text("new\n")
        git(repo, "add", "new.txt")
        git(repo, "commit", "-q", "-m", "New work")

        result = runner.invoke(cli, ["apply"])

        check(result.exit_code == 0)
        check("main: protected-skipped" in result.output)

    def test_pop(self, runner, repo):
        runner.invoke(cli, ["push"])

        result = runner.invoke(cli, ["pop"])

        check(result.exit_code == 0)
        check("Dropped snapshot #0" in result.output)
        check("No snapshots" in runner.invoke(cli, ["list"]).output)

    def test_pop_conflict_exit_code(self, runner, repo):
        (repo / "README.md").write_text("# Stashed\n")
        runner.invoke(cli, ["push"])
        (repo / "README.md").write_text("# Conflicting\n")

        result = runner.invoke(cli, ["pop"])

        check(result.exit_code == 3)
        check("working tree: conflict" in result.output)
        check("Dropped" not in result.output)


class TestDropAndClear:
    def test_drop(self, runner, repo):
        runner.invoke(cli, split("push -m one"))
        runner.invoke(cli, split("push -m two"))

        result = runner.invoke(cli, ["drop"])

        check(result.exit_code == 0)
        check("Dropped snapshot #1 'two'" in result.output)

    def test_drop_selector_and_age_conflict(self, runner, repo):
        result = runner.invoke(cli, split("drop 0 --older-than 1d"))
        check(result.exit_code == 2)
        check("mutually exclusive" in result.output)

    def test_drop_invalid_age(self, runner, repo):
        result = runner.invoke(cli, split("drop --older-than soon"))
        check(result.exit_code != 0)
        check("Invalid age" in result.output)

    def test_clear(self, runner, repo):
        runner.invoke(cli, ["push"])
        runner.invoke(cli, ["push"])

        result = runner.invoke(cli, ["clear"])

        check(result.exit_code == 0)
        check("Dropped 2 snapshot(s) from 'default'" in result.output)


class TestConfigCommands:
    def test_protect(self, runner, repo):
        result = runner.invoke(cli, split("protect main 'release/*'"))
        check(result.exit_code == 0)
        check("Protected: main" in result.output)
        check("Protected: release/*" in result.output)

        again = runner.invoke(cli, split("protect main"))
        check("Already protected: main" in again.output)

    def test_protect_malformed_glob(self, runner, repo):
        result = runner.invoke(cli, split("protect 'release/['"))
        check(result.exit_code == 2)

    def test_config(self, runner, repo):
        git(repo, "config", "branch-stash.pull-remote", "upstream")

        result = runner.invoke(cli, ["config"])

        check(result.exit_code == 0)
        check(result.output == "[branch-stash]\n\tpull-remote=upstream\n\tcapacity=0\n")

    def test_bad_config_exit_code(self, runner, repo):
        git(repo, "config", "branch-stash.capacity", "many")
        result = runner.invoke(cli, ["push"])
        check(result.exit_code == 2)
        check("capacity" in result.output)
