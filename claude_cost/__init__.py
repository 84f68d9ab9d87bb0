"""
Claude Cost.

Usage and cost analytics over Claude Code session logs.
"""

__version__ = "0.1.0"
