"""
Pricing calculations and rate management.

Resolves Claude model identifiers to per-million-token prices and computes
the cost of a single assistant message. Prices follow the LiteLLM model
price list.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Mapping, Tuple

from .token_counter import TokenUsage

TOKENS_PER_UNIT = Decimal("1000000")


@dataclass(frozen=True)
class ModelPricing:
    """Per-million-token pricing for a specific model."""
    input: Decimal        # $ per million input tokens
    output: Decimal       # $ per million output tokens
    cache_write: Decimal  # $ per million cache creation tokens
    cache_read: Decimal   # $ per million cache read tokens

    def __post_init__(self):
        """Validate all prices are positive."""
        for name in ("input", "output", "cache_write", "cache_read"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} price must be > 0")


def _pricing(input: str, output: str, cache_write: str, cache_read: str) -> ModelPricing:
    return ModelPricing(
        input=Decimal(input),
        output=Decimal(output),
        cache_write=Decimal(cache_write),
        cache_read=Decimal(cache_read),
    )


# Fallback for unknown models (Sonnet tier)
DEFAULT_PRICING = _pricing("3", "15", "3.75", "0.30")

# Ordered family rules: version-specific tokens come before bare family names
FAMILY_RULES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("opus-4-5", "opus-4.5", "opus4.5"), "claude-opus-4-5-20251101"),
    (("sonnet-4-5", "sonnet-4.5", "sonnet4.5"), "claude-sonnet-4-5-20241022"),
    (("haiku-4-5", "haiku-4.5", "haiku4.5"), "claude-3-5-haiku-20241022"),
    (("opus-4", "opus4"), "claude-opus-4-20250514"),
    (("sonnet-4", "sonnet4"), "claude-sonnet-4-20250514"),
    (("3-5-haiku", "3.5-haiku"), "claude-3-5-haiku-20241022"),
    (("haiku",), "claude-3-haiku-20240307"),
    (("opus",), "claude-3-opus-20240229"),
    (("sonnet",), "claude-3-5-sonnet-20241022"),
)

DISPLAY_NAME_RULES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("opus-4-5", "opus-4.5"), "Opus 4.5"),
    (("sonnet-4-5", "sonnet-4.5"), "Sonnet 4.5"),
    (("haiku-4-5", "haiku-4.5"), "Haiku 4.5"),
    (("opus-4", "opus4"), "Opus 4"),
    (("sonnet-4", "sonnet4"), "Sonnet 4"),
    (("3-7-sonnet", "3.7"), "Sonnet 3.7"),
    (("3-5-sonnet", "3.5-sonnet"), "Sonnet 3.5"),
    (("3-5-haiku", "3.5-haiku"), "Haiku 3.5"),
    (("opus",), "Opus 3"),
    (("sonnet",), "Sonnet 3"),
    (("haiku",), "Haiku 3"),
)

DISPLAY_NAME_MAX_LENGTH = 20


def _match_rule(model_lower: str, rules: Tuple[Tuple[Tuple[str, ...], str], ...]):
    for tokens, target in rules:
        if any(token in model_lower for token in tokens):
            return target
    return None


@dataclass(frozen=True)
class PricingTable:
    """Fixed pricing table for known Claude models."""
    prices: Dict[str, ModelPricing]
    default: ModelPricing = DEFAULT_PRICING

    def get_pricing(self, model: str) -> ModelPricing:
        """Get pricing for a model identifier.

        Never fails. Resolution order:
        1. Exact key match
        2. Case-insensitive substring match in either direction, in table
           order. Which key wins when several overlap depends on that order,
           so this step is best-effort.
        3. ``FAMILY_RULES``, first match wins
        4. The table default

        Args:
            model: Model identifier as found in the log

        Returns:
            ModelPricing for the model
        """
        if model in self.prices:
            return self.prices[model]

        model_lower = model.lower()
        if model_lower:
            for key, pricing in self.prices.items():
                key_lower = key.lower()
                if key_lower in model_lower or model_lower in key_lower:
                    return pricing

        family_key = _match_rule(model_lower, FAMILY_RULES)
        if family_key is not None and family_key in self.prices:
            return self.prices[family_key]

        return self.default

    def with_overrides(self, overrides: Mapping[str, ModelPricing]) -> "PricingTable":
        """Return a new table with extra or replaced model prices."""
        prices = dict(self.prices)
        prices.update(overrides)
        return PricingTable(prices=prices, default=self.default)


# Prices from LiteLLM (per-token costs converted to per-million)
PRICING_TABLE = PricingTable({
    "claude-opus-4-5-20251101": _pricing("5", "25", "6.25", "0.50"),
    "claude-sonnet-4-5-20250929": _pricing("3", "15", "3.75", "0.30"),
    "claude-haiku-4-5-20251001": _pricing("0.80", "4", "1", "0.08"),
    "claude-opus-4-20250514": _pricing("15", "75", "18.75", "1.50"),
    "claude-sonnet-4-5-20241022": _pricing("3", "15", "3.75", "0.30"),
    "claude-sonnet-4-20250514": _pricing("3", "15", "3.75", "0.30"),
    "claude-3-7-sonnet-20250219": _pricing("3", "15", "3.75", "0.30"),
    "claude-3-5-sonnet-20241022": _pricing("3", "15", "3.75", "0.30"),
    "claude-3-5-sonnet-20240620": _pricing("3", "15", "3.75", "0.30"),
    "claude-3-5-haiku-20241022": _pricing("0.80", "4", "1", "0.08"),
    "claude-3-opus-20240229": _pricing("15", "75", "18.75", "1.50"),
    "claude-3-sonnet-20240229": _pricing("3", "15", "3.75", "0.30"),
    "claude-3-haiku-20240307": _pricing("0.25", "1.25", "0.30", "0.03"),
})


def calculate_cost(
    model: str,
    usage: TokenUsage,
    pricing_table: PricingTable = PRICING_TABLE,
) -> float:
    """Calculate the dollar cost of one model invocation.

    cost = sum(count_k / 1_000_000 * price_k) over input, output,
    cache write and cache read. No rounding is applied; per-message costs
    are fractions of a cent and are summed later.

    Args:
        model: Model identifier
        usage: Token usage data
        pricing_table: Table used to resolve the model

    Returns:
        Cost in dollars
    """
    pricing = pricing_table.get_pricing(model)

    input_cost = (Decimal(usage.input_tokens) / TOKENS_PER_UNIT) * pricing.input
    output_cost = (Decimal(usage.output_tokens) / TOKENS_PER_UNIT) * pricing.output
    cache_write_cost = (Decimal(usage.cache_creation_tokens) / TOKENS_PER_UNIT) * pricing.cache_write
    cache_read_cost = (Decimal(usage.cache_read_tokens) / TOKENS_PER_UNIT) * pricing.cache_read

    return float(input_cost + output_cost + cache_write_cost + cache_read_cost)


def get_model_display_name(model: str) -> str:
    """Short human name for a model id, e.g. ``Opus 4.5``."""
    display_name = _match_rule(model.lower(), DISPLAY_NAME_RULES)
    if display_name is not None:
        return display_name
    return model[:DISPLAY_NAME_MAX_LENGTH]
