"""Command-line interface for Time Clock."""
