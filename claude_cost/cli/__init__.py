"""Command-line interface for Claude Cost."""
