import click

from ..commands_logic import cmd_clear, cmd_drop
from ._shared import handle_stash_errors, stack_option


@click.command()
@click.argument("selector", required=False)
@stack_option
@click.option(
    "--older-than",
    metavar="AGE",
    help="Drop every snapshot older than AGE (e.g. 12h, 7d, 2w)",
)
@handle_stash_errors
def drop(selector: str | None, stack: str, older_than: str | None) -> None:
    """Delete a snapshot (default: most recent)."""
    if selector and older_than:
        raise click.UsageError("SELECTOR and --older-than are mutually exclusive")
    for snapshot in cmd_drop(stack, selector, older_than):
        click.echo(f"Dropped snapshot #{snapshot.id} '{snapshot.name}'")


@click.command()
@stack_option
@handle_stash_errors
def clear(stack: str) -> None:
    """Delete all snapshots in a stack."""
    removed = cmd_clear(stack)
    click.echo(f"Dropped {len(removed)} snapshot(s) from '{stack}'")
