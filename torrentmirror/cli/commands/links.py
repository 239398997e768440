"""``torrentmirror links`` — list the link entries of a storage directory.

Dangling entries (torrent or artifact gone) are flagged; the directory
seeder removes those on its next scan.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from torrentmirror.config import settings
from torrentmirror.core.errors import LinkResolutionError
from torrentmirror.core.file_link import LinkStore

console = Console()


def links_cmd(
    storage_dir: Path = typer.Option(
        None,
        "--storage",
        "-s",
        help="Storage directory (defaults to TORRENTMIRROR_STORAGE_PATH).",
    ),
) -> None:
    """List every link entry under the storage directory."""
    root = storage_dir or settings.storage_path
    if not root.is_dir():
        console.print(f"[dim]No storage directory at {root}.[/dim]")
        return
    store = LinkStore(root)

    table = Table(title=f"Links in {store.storage_dir}")
    table.add_column("Link", style="cyan")
    table.add_column("Artifact")
    table.add_column("Torrent")
    table.add_column("Status", justify="center")

    count = 0
    for link_file in store.iter_links():
        count += 1
        relative = link_file.relative_to(store.storage_dir).as_posix()
        try:
            link = store.resolve(link_file)
        except LinkResolutionError as exc:
            table.add_row(relative, "-", "-", f"[red]{exc}[/red]")
            continue
        if link.is_dangling or not link.artifact_file.is_file():
            status = "[yellow]dangling[/yellow]"
        else:
            status = "[green]ok[/green]"
        table.add_row(relative, str(link.artifact_file), str(link.torrent_file), status)

    if not count:
        console.print("[dim]No link entries.[/dim]")
        return
    console.print(table)
