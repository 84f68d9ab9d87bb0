"""
CLI interface for Claude Cost.

Provides command-line access to usage statistics.
"""

import json
import logging
import sys
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from claude_cost.config.loader import AppConfig, resolve_config
from claude_cost.core.aggregator import StatsSnapshot
from claude_cost.core.formatting import (
    build_json_summary,
    format_cost,
    format_tokens,
    get_project_name,
)
from claude_cost.core.time_range import TimeRange, resolve_time_range
from claude_cost.storage.corpus import CorpusLoader
from claude_cost.storage.file_cache import FileCache
from claude_cost.storage.stats_cache import StatsCache

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

RANGE_OPTION = typer.Option(TimeRange.ALL, "--range", "-r", help="Time window to report on")
CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Path to a YAML config file")
PROJECTS_DIR_OPTION = typer.Option(
    None, "--projects-dir", "-p", help="Directory holding the session logs"
)
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Log cache and file activity")
LIMIT_OPTION = typer.Option(10, "--limit", "-n", min=1, help="Maximum rows to show")


def build_stats_cache(config: AppConfig, projects_dir: Optional[str] = None) -> StatsCache:
    """Wire a FileCache, CorpusLoader and StatsCache from configuration."""
    file_cache = FileCache(pricing_table=config.pricing_table())
    loader = CorpusLoader(projects_dir or config.projects_dir, file_cache)
    return StatsCache(loader, ttl_seconds=config.cache_ttl_seconds)


def _load_config(config_path: Optional[str], verbose: bool) -> AppConfig:
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    try:
        return resolve_config(config_path)
    except (FileNotFoundError, yaml.YAMLError, ValueError) as e:
        console.print(f"[red]Error loading config:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


def _query(
    time_range: TimeRange,
    config_path: Optional[str],
    projects_dir: Optional[str],
    verbose: bool,
) -> StatsSnapshot:
    config = _load_config(config_path, verbose)
    stats_cache = build_stats_cache(config, projects_dir)
    since, until = resolve_time_range(time_range)
    return stats_cache.query(since, until)


def _print_no_data() -> None:
    console.print("\n[bold yellow]No usage data found[/]")
    console.print("\nSession logs are read from ~/.claude/projects by default.")
    console.print("Use --projects-dir or a config file to point elsewhere.\n")


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """Claude Cost CLI."""
    if ctx.invoked_subcommand is None:
        console.print("Claude Cost - Use --help to see available commands")


@app.command()
def status(
    config_path: Optional[str] = CONFIG_OPTION,
    projects_dir: Optional[str] = PROJECTS_DIR_OPTION,
):
    """Show where session logs are read from."""
    config = _load_config(config_path, verbose=False)
    loader = CorpusLoader(projects_dir or config.projects_dir)
    files = loader.discover()
    console.print(f"Projects directory: {loader.root_dir}")
    console.print(f"Log files found: {len(files)}")


@app.command()
def summary(
    time_range: TimeRange = RANGE_OPTION,
    json_output: bool = typer.Option(False, "--json", "-j", help="Print a JSON document"),
    config_path: Optional[str] = CONFIG_OPTION,
    projects_dir: Optional[str] = PROJECTS_DIR_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """
    Show total cost and tokens with a per-model breakdown.

    With --json, prints total cost, total tokens, session and message
    counts and a per-model breakdown as a JSON document.
    """
    stats = _query(time_range, config_path, projects_dir, verbose)

    if json_output:
        typer.echo(json.dumps(build_json_summary(stats), indent=2, ensure_ascii=False))
        sys.exit(EXIT_CODE_PASS)

    if stats.is_empty:
        _print_no_data()
        sys.exit(EXIT_CODE_PASS)

    _display_summary(stats, time_range)


@app.command()
def sessions(
    time_range: TimeRange = RANGE_OPTION,
    limit: int = LIMIT_OPTION,
    config_path: Optional[str] = CONFIG_OPTION,
    projects_dir: Optional[str] = PROJECTS_DIR_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """List sessions, most recent first."""
    stats = _query(time_range, config_path, projects_dir, verbose)
    if stats.is_empty:
        _print_no_data()
        sys.exit(EXIT_CODE_PASS)

    table = Table(title=f"Sessions ({time_range.value})")
    table.add_column("Project")
    table.add_column("Model")
    table.add_column("Last message")
    table.add_column("Messages", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Cost", justify="right")

    for session in stats.sessions[:limit]:
        table.add_row(
            get_project_name(session.project),
            session.model,
            session.last_message.astimezone().strftime("%Y-%m-%d %H:%M"),
            str(session.message_count),
            format_tokens(session.total_tokens.total_tokens),
            format_cost(session.total_cost),
        )
    console.print(table)


@app.command()
def daily(
    time_range: TimeRange = RANGE_OPTION,
    limit: int = LIMIT_OPTION,
    config_path: Optional[str] = CONFIG_OPTION,
    projects_dir: Optional[str] = PROJECTS_DIR_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """List per-day totals, newest first."""
    stats = _query(time_range, config_path, projects_dir, verbose)
    if stats.is_empty:
        _print_no_data()
        sys.exit(EXIT_CODE_PASS)

    table = Table(title=f"Daily usage ({time_range.value})")
    table.add_column("Date")
    table.add_column("Sessions", justify="right")
    table.add_column("Messages", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Cost", justify="right")

    for day in stats.daily[:limit]:
        table.add_row(
            day.date,
            str(day.session_count),
            str(day.message_count),
            format_tokens(day.total_tokens.total_tokens),
            format_cost(day.total_cost),
        )
    console.print(table)


def _display_summary(stats: StatsSnapshot, time_range: TimeRange) -> None:
    """Display totals and the per-model breakdown."""
    console.print(f"\n[bold]Claude Usage ({time_range.value})[/bold]")
    console.print("-" * 40)
    console.print(f"Total cost: {format_cost(stats.total_cost)}")
    console.print(f"Total tokens: {format_tokens(stats.total_tokens.total_tokens)}")
    console.print(f"Sessions: {stats.session_count}")
    console.print(f"Messages: {stats.message_count}")

    table = Table(title="By model")
    table.add_column("Model")
    table.add_column("Input", justify="right")
    table.add_column("Output", justify="right")
    table.add_column("Cache write", justify="right")
    table.add_column("Cache read", justify="right")
    table.add_column("Cost", justify="right")

    ordered = sorted(stats.by_model.values(), key=lambda m: m.cost, reverse=True)
    for totals in ordered:
        table.add_row(
            totals.display_name,
            format_tokens(totals.tokens.input_tokens),
            format_tokens(totals.tokens.output_tokens),
            format_tokens(totals.tokens.cache_creation_tokens),
            format_tokens(totals.tokens.cache_read_tokens),
            format_cost(totals.cost),
        )
    console.print(table)

    if stats.hourly:
        busiest = max(stats.hourly, key=lambda h: h.cost)
        console.print(
            f"Busiest hour today: {busiest.hour:02d}:00 "
            f"({format_cost(busiest.cost)}, {busiest.message_count} messages)"
        )


if __name__ == "__main__":
    app()
