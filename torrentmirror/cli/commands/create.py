"""``torrentmirror create`` — build a torrent for one artifact file."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from torrentmirror.config import settings
from torrentmirror.core.errors import MirrorError
from torrentmirror.core.metadata import TORRENT_FILE_SUFFIX, create_torrent, save_torrent

console = Console()


def create_cmd(
    source: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="Artifact file to hash.",
    ),
    announce: str = typer.Option(
        None,
        "--announce",
        "-a",
        help="Tracker announce URL (defaults to TORRENTMIRROR_ANNOUNCE_URL).",
    ),
    output: Path = typer.Option(
        None,
        "--output",
        "-o",
        help="Where to write the torrent (defaults to <source>.torrent).",
    ),
) -> None:
    """Hash SOURCE into a single-file torrent and save it."""
    announce_url = announce or settings.announce_url
    if not announce_url:
        console.print("[red]No announce URL:[/red] pass --announce or set TORRENTMIRROR_ANNOUNCE_URL")
        raise typer.Exit(code=2)

    target = output or source.with_name(f"{source.name}{TORRENT_FILE_SUFFIX}")
    try:
        torrent = create_torrent(source, announce_url)
        save_torrent(torrent, target)
    except (OSError, MirrorError) as exc:
        console.print(f"[red]Cannot create torrent:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    console.print(
        Panel(
            "\n".join([
                f"[bold]Torrent:[/bold]   {target}",
                f"[bold]Info hash:[/bold] {torrent.info_hash}",
                f"[bold]Size:[/bold]      {torrent.length} bytes in {torrent.piece_count} pieces",
            ]),
            title="[bold green]Torrent created[/bold green]",
            border_style="green",
        )
    )
