import click

from ..commands_logic import cmd_config, cmd_protect
from ._shared import handle_stash_errors


@click.command()
@click.argument("globs", nargs=-1, required=True)
@handle_stash_errors
def protect(globs: tuple[str, ...]) -> None:
    """Protect branches matching GLOBS from being moved backwards.

    GLOBS: branch name patterns such as main or release/*
    """
    added = cmd_protect(globs)
    for glob in globs:
        state = "Protected" if glob in added else "Already protected"
        click.echo(f"{state}: {glob}")


@click.command("config")
@handle_stash_errors
def show_config() -> None:
    """Show the effective configuration."""
    click.echo(cmd_config(), nl=False)
