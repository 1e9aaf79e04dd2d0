import click

from ..commands_logic import cmd_apply, cmd_pop
from ._shared import echo_report, handle_stash_errors, protect_option, stack_option


@click.command()
@click.argument("selector", required=False)
@stack_option
@click.option("-n", "--dry-run", is_flag=True, help="Show what would change")
@protect_option
@handle_stash_errors
def apply(
    selector: str | None, stack: str, dry_run: bool, protect: tuple[str, ...]
) -> None:
    """Restore branches from a snapshot.

    SELECTOR: snapshot id (7 or #7), relative index (@{0}) or name
    (default: most recent)
    """
    report = cmd_apply(stack, selector, dry_run=dry_run, protect=protect)
    echo_report(report)


@click.command()
@click.argument("selector", required=False)
@stack_option
@handle_stash_errors
def pop(selector: str | None, stack: str) -> None:
    """Restore branches from a snapshot, then drop it."""
    report = cmd_pop(stack, selector)
    echo_report(report)
    click.echo(f"Dropped snapshot #{report.snapshot_id}")
