"""Configuration loading for Claude Cost."""
