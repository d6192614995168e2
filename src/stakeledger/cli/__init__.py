"""Command-line tools for inspecting ledger economics."""
