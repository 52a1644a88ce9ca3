"""Command implementations for the repofetch CLI."""
