"""
Pricing calculations and rate management.

Converts token counts into USD using a per-model price table quoted
per million tokens.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Union

from .token_counter import TokenUsage

TOKENS_PER_MILLION = Decimal("1000000")

DEFAULT_MODEL = "gpt-4o-mini"


@dataclass(frozen=True)
class ModelPricing:
    """Per-token pricing for a specific model."""
    input_per_million: Decimal  # USD per 1M input (prompt) tokens
    output_per_million: Decimal  # USD per 1M output (completion) tokens

    def __post_init__(self):
        """Validate prices are non-negative."""
        if self.input_per_million < 0:
            raise ValueError("input_per_million must be >= 0")
        if self.output_per_million < 0:
            raise ValueError("output_per_million must be >= 0")


@dataclass(frozen=True)
class PricingTable:
    """Pricing table with a designated fallback model."""
    prices: Dict[str, ModelPricing]
    default_model: str = DEFAULT_MODEL

    def __post_init__(self):
        """The fallback model must itself be priced."""
        if self.default_model not in self.prices:
            raise ValueError(
                f"default_model '{self.default_model}' is missing from the price table"
            )

    def get_pricing(self, model: str) -> ModelPricing:
        """Get pricing for a model.

        Unknown models are billed at the default model's rates.

        Args:
            model: Model identifier

        Returns:
            ModelPricing for the model, or for the default model
        """
        return self.prices.get(model, self.prices[self.default_model])

    @property
    def models(self):
        """Priced model names, sorted."""
        return sorted(self.prices)


PRICING_TABLE = PricingTable({
    "gpt-4o-mini": ModelPricing(
        input_per_million=Decimal("0.15"),
        output_per_million=Decimal("0.60")
    ),
    "gpt-3.5-turbo": ModelPricing(
        input_per_million=Decimal("0.50"),
        output_per_million=Decimal("1.50")
    ),
})


def to_decimal(value: Union[int, float, str, Decimal]) -> Decimal:
    """Convert a configured price to Decimal without float artifacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def calculate_cost(
    model: str,
    usage: TokenUsage,
    pricing_table: PricingTable = PRICING_TABLE
) -> float:
    """Calculate the USD cost of one call.

    Never fails: unknown models fall back to the table's default model.

    Args:
        model: Model identifier
        usage: Token usage data
        pricing_table: Table to price against

    Returns:
        input/1M * input price + output/1M * output price, unrounded
    """
    pricing = pricing_table.get_pricing(model)

    input_cost = (Decimal(usage.prompt_tokens) / TOKENS_PER_MILLION) * pricing.input_per_million
    output_cost = (Decimal(usage.completion_tokens) / TOKENS_PER_MILLION) * pricing.output_per_million

    return float(input_cost + output_cost)
