"""Main Typer application — imports and registers all CLI commands.

Entry point: ``torrentmirror`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import typer
from rich.console import Console

from torrentmirror import __version__
from torrentmirror.cli.commands.create import create_cmd
from torrentmirror.cli.commands.info import info_cmd
from torrentmirror.cli.commands.links import links_cmd
from torrentmirror.config import configure_logging

app = typer.Typer(
    name="torrentmirror",
    help="torrentmirror: torrent-based distribution of large build artifacts.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="create", help="Create a torrent for an artifact file.")(create_cmd)
app.command(name="info", help="Show the metadata of a torrent file.")(info_cmd)
app.command(name="links", help="List link entries in a storage directory.")(links_cmd)


@app.callback()
def _main(
    log_level: str = typer.Option(None, "--log-level", help="Override TORRENTMIRROR_LOG_LEVEL."),
) -> None:
    configure_logging(log_level.upper() if log_level else None)


@app.command(name="version", help="Print the torrentmirror version.")
def version_cmd() -> None:
    Console().print(f"torrentmirror {__version__}")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
