"""
Core modules for Claude Cost.

This package contains pricing resolution, log-line parsing, aggregation
and the formatting helpers used by the CLI.
"""
