"""Output formatting for the command line tool."""

import click


class OutputFormatter:
    """Writes user facing messages.

    Informational messages go to standard output. Warnings and errors
    always go to standard error, so they never mix with streamed file
    content.
    """

    def print(self, message: str = "") -> None:
        """Print a plain line to standard output."""
        click.echo(message)

    def info(self, message: str) -> None:
        click.echo(message)

    def warning(self, message: str) -> None:
        click.secho(f"WARNING: {message}", fg="yellow", err=True)

    def error(self, message: str) -> None:
        click.secho(f"ERROR: {message}", fg="red", err=True)
