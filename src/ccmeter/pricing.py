from dataclasses import dataclass
from decimal import Decimal

_PER_MILLION = Decimal(1_000_000)


@dataclass(frozen=True, slots=True)
class ModelPricing:
    """
    ModelPricing holds the USD price per million tokens for each
    token category of a model tier.

    Rates are Decimal so that costs add up exactly in any order.
    """

    name: "str"
    input_per_million: "Decimal"
    output_per_million: "Decimal"
    cache_creation_per_million: "Decimal"
    cache_read_per_million: "Decimal"

    def cost(
        self,
        input_tokens: "int",
        output_tokens: "int",
        cache_creation_tokens: "int",
        cache_read_tokens: "int",
    ) -> "Decimal":
        """
        returns the estimated cost in USD for the given token counts.
        """
        return (
            input_tokens * self.input_per_million
            + output_tokens * self.output_per_million
            + cache_creation_tokens * self.cache_creation_per_million
            + cache_read_tokens * self.cache_read_per_million
        ) / _PER_MILLION


OPUS = ModelPricing(
    name="opus",
    input_per_million=Decimal("15.00"),
    output_per_million=Decimal("75.00"),
    cache_creation_per_million=Decimal("18.75"),
    cache_read_per_million=Decimal("1.50"),
)

SONNET = ModelPricing(
    name="sonnet",
    input_per_million=Decimal("3.00"),
    output_per_million=Decimal("15.00"),
    cache_creation_per_million=Decimal("3.75"),
    cache_read_per_million=Decimal("0.30"),
)

HAIKU = ModelPricing(
    name="haiku",
    input_per_million=Decimal("0.25"),
    output_per_million=Decimal("1.25"),
    cache_creation_per_million=Decimal("0.30"),
    cache_read_per_million=Decimal("0.03"),
)

DEFAULT_PRICING = SONNET

# checked in order, first substring match wins
_TIERS: "list[tuple[str, ModelPricing]]" = [
    ("opus", OPUS),
    ("haiku", HAIKU),
]


def pricing_for(model: "str | None") -> "ModelPricing":
    """
    selects the pricing tier for a model identifier by case-insensitive
    substring match. Unknown or absent models use the default tier.
    """
    if not model:
        return DEFAULT_PRICING

    lowered = model.lower()
    for needle, pricing in _TIERS:
        if needle in lowered:
            return pricing

    return DEFAULT_PRICING
