"""Core distribution engine: torrent codec, link store, seeders."""
