"""torrentmirror CLI — Typer-based command-line interface.

Provides the ``torrentmirror`` command with subcommands for creating
torrents from artifacts, inspecting torrent files, and listing the link
entries of a storage directory.

All output uses Rich for formatted terminal display.
"""
