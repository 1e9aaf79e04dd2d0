"""Shared utilities for commands."""

import functools
from typing import Any, Callable

import click

from ..errors import StashError
from ..operations import RestoreReport, SnapshotStore, WorkingTreeStatus


class StashClickException(click.ClickException):
    """ClickException carrying the exit code of the underlying error."""

    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


def handle_stash_errors(f: Callable[..., Any]) -> Callable[..., Any]:
    """Turn StashError into a click error with the matching exit code."""

    @functools.wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return f(*args, **kwargs)
        except StashError as e:
            raise StashClickException(str(e), e.exit_code) from e

    return wrapper


stack_option = click.option(
    "-s",
    "--stack",
    default=SnapshotStore.DEFAULT_STACK,
    show_default=True,
    help="Snapshot stack to use",
)

protect_option = click.option(
    "-p",
    "--protect",
    multiple=True,
    help="Protect branches matching this glob (saved to the repository config)",
)


def _short(target: str | None) -> str:
    return target[:7] if target else "(none)"


def echo_report(report: RestoreReport) -> None:
    """Print a restore report and fail when it holds conflicts."""
    verb = "Would restore" if report.dry_run else "Restored"
    click.echo(f"{verb} snapshot #{report.snapshot_id}")
    for outcome in report.outcomes:
        line = f"  {outcome.name}: {outcome.status.value}"
        if outcome.before != outcome.after:
            line += f" {_short(outcome.before)} -> {_short(outcome.after)}"
        if outcome.detail:
            line += f" ({outcome.detail})"
        click.echo(line)

    if report.working_tree is not WorkingTreeStatus.NOT_APPLICABLE:
        line = f"  working tree: {report.working_tree.value}"
        if report.working_tree_detail:
            line += f" ({report.working_tree_detail})"
        click.echo(line)

    if report.rejected is not None:
        raise StashClickException(str(report.rejected), report.rejected.exit_code)
    if report.conflicts:
        first = report.conflicts[0]
        raise StashClickException(
            f"{len(report.conflicts)} conflict(s), first: {first}", first.exit_code
        )
