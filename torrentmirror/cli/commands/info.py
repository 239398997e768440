"""``torrentmirror info`` — show what a torrent file declares."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from torrentmirror.core.errors import MetadataValidationError
from torrentmirror.core.metadata import load_torrent_file

console = Console()


def info_cmd(
    torrent_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Torrent file to inspect."),
) -> None:
    """Print the metadata of TORRENT_FILE."""
    try:
        torrent = load_torrent_file(torrent_file)
    except MetadataValidationError as exc:
        console.print(f"[red]Invalid torrent:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    created = "-"
    if torrent.creation_date is not None:
        created = datetime.fromtimestamp(torrent.creation_date, tz=timezone.utc).isoformat()

    table = Table(title=str(torrent_file), show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Name", torrent.name)
    table.add_row("Info hash", torrent.info_hash)
    table.add_row("Length", f"{torrent.length} bytes")
    table.add_row("Pieces", f"{torrent.piece_count} x {torrent.piece_length}")
    table.add_row("Announce", torrent.announce or "-")
    table.add_row("Created by", torrent.created_by or "-")
    table.add_row("Created", created)
    console.print(table)
