"""Command-line interface for SheetChat."""
