"""Pricing and usage accounting."""

from dataclasses import dataclass

TOKENS_PER_MILLION = 1_000_000


@dataclass(frozen=True)
class PricingTier:
    """Prompt rate applied once prompt_tokens reaches ``threshold``."""
    threshold: int
    rate: float


@dataclass(frozen=True)
class Cost:
    """Per-token and per-request rates for a model.

    Attributes:
        prompt: Cost per prompt token.
        completion: Cost per completion (and reasoning) token.
        request: Flat cost per request.
        prompt_tiers: Optional tiered prompt rates, ordered by ascending threshold.
    """

    prompt: float = 0.0
    completion: float = 0.0
    request: float = 0.0
    prompt_tiers: tuple[PricingTier, ...] = ()

    def __post_init__(self) -> None:
        if self.prompt < 0 or self.completion < 0 or self.request < 0:
            raise ValueError("cost rates must be non-negative")
        tiers = tuple(sorted(self.prompt_tiers, key=lambda tier: tier.threshold))
        if any(tier.rate < 0 or tier.threshold < 0 for tier in tiers):
            raise ValueError("pricing tiers must be non-negative")
        object.__setattr__(self, "prompt_tiers", tiers)

    @classmethod
    def from_per_million(
        cls,
        input_per_million: float,
        output_per_million: float,
        prompt_tiers_per_million: dict[int, float] | None = None,
    ) -> "Cost":
        """Build a Cost from catalog prices quoted per million tokens."""
        tiers = tuple(
            PricingTier(threshold=threshold, rate=rate / TOKENS_PER_MILLION)
            for threshold, rate in (prompt_tiers_per_million or {}).items()
        )
        return cls(
            prompt=input_per_million / TOKENS_PER_MILLION,
            completion=output_per_million / TOKENS_PER_MILLION,
            request=0.0,
            prompt_tiers=tiers,
        )

    def prompt_rate_for(self, prompt_tokens: int) -> float:
        """Rate of the highest tier whose threshold does not exceed prompt_tokens."""
        rate = self.prompt
        for tier in self.prompt_tiers:
            if tier.threshold > prompt_tokens:
                break
            rate = tier.rate
        return rate

    def calculate(self, usage: "TokenUsage") -> float:
        return calculate_cost(self, usage)


@dataclass(frozen=True)
class TokenUsage:
    """Token counts reported for one call.

    ``reasoning_tokens`` are reported by the adapter separately from
    ``completion_tokens`` and are billed at the completion rate.
    """

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int | None = None
    reasoning_tokens: int = 0

    def __post_init__(self) -> None:
        if self.total_tokens is None:
            total = self.prompt_tokens + self.completion_tokens + self.reasoning_tokens
            object.__setattr__(self, "total_tokens", total)
        if min(self.prompt_tokens, self.completion_tokens, self.total_tokens, self.reasoning_tokens) < 0:
            raise ValueError("token counts must be non-negative")


def calculate_cost(cost: Cost, usage: TokenUsage) -> float:
    """Convert token usage into money.

    prompt_rate * prompt_tokens + completion_rate * (completion + reasoning)
    + request flat fee, where prompt_rate honours the tier table.

    Args:
        cost: Rates of the model that served the call.
        usage: Usage reported by the adapter.

    Returns:
        Cost of the call, never negative.
    """
    prompt_rate = cost.prompt_rate_for(usage.prompt_tokens)
    billed_completion = usage.completion_tokens + usage.reasoning_tokens
    return prompt_rate * usage.prompt_tokens + cost.completion * billed_completion + cost.request
