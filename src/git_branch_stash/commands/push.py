import click

from ..commands_logic import cmd_push
from ._shared import handle_stash_errors, protect_option, stack_option


@click.command()
@stack_option
@click.option("-m", "--message", help="Name the snapshot (default: 'WIP on <branch>')")
@protect_option
@handle_stash_errors
def push(stack: str, message: str | None, protect: tuple[str, ...]) -> None:
    """Stash the state of all branches."""
    snapshot = cmd_push(stack, message, protect)
    click.echo(
        f"Saved snapshot #{snapshot.id} '{snapshot.name}' "
        f"({len(snapshot.branches)} branches)"
    )
