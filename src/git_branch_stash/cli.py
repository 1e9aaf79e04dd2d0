"""CLI entry point for git-branch-stash."""

import logging

import click

LOG_FORMAT = "[%(levelname)s %(name)s] %(message)s"


def _configure_logging(verbose: int, quiet: bool) -> None:
    if quiet:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT)


@click.group(invoke_without_command=True)
@click.option("-v", "--verbose", count=True, help="Increase log output (-vv for debug)")
@click.option("-q", "--quiet", is_flag=True, help="Only log errors")
@click.pass_context
def cli(ctx: click.Context, verbose: int, quiet: bool) -> None:
    """Git-branch-stash: snapshot and restore all of your branches.

    Records where every local branch points, plus uncommitted changes on the
    checked-out branch, so you can go back after a rebase gone wrong.
    Runs `push` when no command is given.
    """
    ctx.ensure_object(dict)
    _configure_logging(verbose, quiet)

    if ctx.invoked_subcommand is None:
        ctx.invoke(push)


# Import and register commands
from .commands.push import push
from .commands.list import list_snapshots, stacks
from .commands.apply import apply, pop
from .commands.drop import drop, clear
from .commands.config import protect, show_config

cli.add_command(push)
cli.add_command(list_snapshots)
cli.add_command(stacks)
cli.add_command(apply)
cli.add_command(pop)
cli.add_command(drop)
cli.add_command(clear)
cli.add_command(protect)
cli.add_command(show_config)


if __name__ == "__main__":
    cli()
