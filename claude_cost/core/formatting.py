"""
Output formatting helpers.

Compact currency and token strings for the display layer, and the flat
document printed by the machine-readable output mode.
"""

from typing import Dict, Tuple

from .aggregator import StatsSnapshot
from .token_counter import TokenUsage


def format_cost(cost: float) -> str:
    """Format a dollar amount compactly.

    ``$1.23K`` from a thousand dollars up, ``$12.34`` down to one cent and
    ``0.42¢`` below that.
    """
    if cost >= 1000:
        return f"${cost / 1000:.2f}K"
    if cost >= 0.01:
        return f"${cost:.2f}"
    return f"{cost * 100:.2f}¢"


def format_tokens(tokens: int) -> str:
    """Format a token count as ``1.20M``, ``2.5K`` or a plain integer."""
    if tokens >= 1_000_000:
        return f"{tokens / 1_000_000:.2f}M"
    if tokens >= 1_000:
        return f"{tokens / 1_000:.1f}K"
    return str(tokens)


def get_project_name(path: str) -> str:
    """Last component of a project's working directory."""
    parts = path.split("/")
    return parts[-1] or path


def build_json_summary(stats: StatsSnapshot) -> Dict[str, object]:
    """Build the machine-readable summary document.

    The per-model breakdown is keyed by display name; models sharing a
    display name are merged.
    """
    merged: Dict[str, Tuple[float, TokenUsage]] = {}
    for totals in stats.by_model.values():
        cost, tokens = merged.get(totals.display_name, (0.0, TokenUsage()))
        merged[totals.display_name] = (cost + totals.cost, tokens + totals.tokens)

    return {
        "totalCost": format_cost(stats.total_cost),
        "totalTokens": format_tokens(stats.total_tokens.total_tokens),
        "sessions": stats.session_count,
        "messages": stats.message_count,
        "breakdown": {
            name: {
                "cost": format_cost(cost),
                "tokens": format_tokens(tokens.total_tokens),
            }
            for name, (cost, tokens) in merged.items()
        },
    }
