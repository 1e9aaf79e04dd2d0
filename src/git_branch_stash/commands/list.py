import click

from ..commands_logic import cmd_list, cmd_stacks
from ..operations.snapshot import describe
from ._shared import handle_stash_errors, stack_option


@click.command("list")
@stack_option
@handle_stash_errors
def list_snapshots(stack: str) -> None:
    """List stashed snapshots, newest first."""
    snapshots = cmd_list(stack)
    if not snapshots:
        click.echo(f"No snapshots in stack '{stack}'")
        return

    for snapshot in snapshots:
        for line in describe(snapshot):
            click.echo(line)
        click.echo()


@click.command()
@handle_stash_errors
def stacks() -> None:
    """List all snapshot stacks."""
    for name in cmd_stacks():
        click.echo(name)
