"""nftmarket CLI — Typer-based command-line interface.

Provides the ``nftmarket`` command with subcommands for deploying a
registry, minting, trading, querying listings and verifying the ledger.

All output uses Rich for formatted terminal display.
"""
