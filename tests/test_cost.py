"""Tests for cost accounting."""

import pytest

from llmadapters.cost import Cost, PricingTier, TokenUsage, calculate_cost


class TestCost:
    """Tests for Cost construction."""

    def test_from_per_million(self):
        """Test converting catalog prices to per-token rates."""
        cost = Cost.from_per_million(2.5, 10.0)

        assert cost.prompt == pytest.approx(2.5e-6)
        assert cost.completion == pytest.approx(10e-6)
        assert cost.request == 0.0

    def test_tiers_sorted(self):
        """Test that tiers are stored in ascending threshold order."""
        cost = Cost(prompt=1.0, prompt_tiers=(PricingTier(200_000, 3.0), PricingTier(100_000, 2.0)))

        assert [tier.threshold for tier in cost.prompt_tiers] == [100_000, 200_000]

    def test_negative_rates_rejected(self):
        """Test that negative rates are rejected."""
        with pytest.raises(ValueError):
            Cost(prompt=-1.0)
        with pytest.raises(ValueError):
            Cost(prompt_tiers=(PricingTier(10, -1.0),))


class TestTokenUsage:
    """Tests for TokenUsage."""

    def test_total_computed(self):
        """Test that total defaults to the sum of counts."""
        usage = TokenUsage(prompt_tokens=10, completion_tokens=5, reasoning_tokens=2)

        assert usage.total_tokens == 17

    def test_explicit_total_kept(self):
        """Test that an adapter-reported total is kept."""
        assert TokenUsage(prompt_tokens=10, completion_tokens=5, total_tokens=20).total_tokens == 20

    def test_negative_rejected(self):
        """Test that negative counts are rejected."""
        with pytest.raises(ValueError):
            TokenUsage(prompt_tokens=-1)


class TestCalculateCost:
    """Tests for calculate_cost."""

    def test_basic(self):
        """Test prompt, completion and request contributions."""
        cost = Cost(prompt=0.001, completion=0.002, request=0.5)
        usage = TokenUsage(prompt_tokens=1000, completion_tokens=500)

        assert calculate_cost(cost, usage) == pytest.approx(1.0 + 1.0 + 0.5)

    def test_zero_usage(self):
        """Test that zero usage costs only the request fee."""
        assert calculate_cost(Cost(prompt=1.0, completion=1.0, request=0.25), TokenUsage()) == 0.25

    def test_reasoning_billed_as_completion(self):
        """Test that reasoning tokens are added at the completion rate."""
        cost = Cost(prompt=0.0, completion=0.01)
        usage = TokenUsage(completion_tokens=100, reasoning_tokens=50)

        assert calculate_cost(cost, usage) == pytest.approx(1.5)

    @pytest.mark.parametrize("prompt_tokens, expected_rate", [
        (0, 1.0),
        (99_999, 1.0),
        (100_000, 2.0),
        (150_000, 2.0),
        (200_000, 3.0),
        (1_000_000, 3.0),
    ])
    def test_tier_selection(self, prompt_tokens, expected_rate):
        """Test that the highest threshold not exceeding prompt_tokens wins."""
        cost = Cost(prompt=1.0, prompt_tiers=(PricingTier(100_000, 2.0), PricingTier(200_000, 3.0)))

        assert cost.prompt_rate_for(prompt_tokens) == expected_rate
        assert calculate_cost(cost, TokenUsage(prompt_tokens=prompt_tokens)) == pytest.approx(
            expected_rate * prompt_tokens
        )

    def test_tiers_from_per_million(self):
        """Test a long-context tier built from catalog prices."""
        cost = Cost.from_per_million(1.25, 10.0, {200_000: 2.5})

        small = calculate_cost(cost, TokenUsage(prompt_tokens=1_000))
        large = calculate_cost(cost, TokenUsage(prompt_tokens=300_000))

        assert small == pytest.approx(1_000 * 1.25e-6)
        assert large == pytest.approx(300_000 * 2.5e-6)

    def test_linear_in_each_count(self):
        """Test linearity in prompt and completion tokens independently."""
        cost = Cost(prompt=0.003, completion=0.007, request=0.1)
        base = calculate_cost(cost, TokenUsage(prompt_tokens=10, completion_tokens=10))

        for prompt_tokens, completion_tokens in [(20, 10), (10, 20), (40, 10), (10, 40)]:
            value = calculate_cost(cost, TokenUsage(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens))
            expected = base + 0.003 * (prompt_tokens - 10) + 0.007 * (completion_tokens - 10)
            assert value == pytest.approx(expected)

    def test_never_negative(self):
        """Test that non-negative inputs give a non-negative cost."""
        for usage in [TokenUsage(), TokenUsage(prompt_tokens=5), TokenUsage(completion_tokens=5, reasoning_tokens=3)]:
            assert calculate_cost(Cost(prompt=0.1, completion=0.2), usage) >= 0

    def test_method_matches_function(self):
        """Test that Cost.calculate delegates to calculate_cost."""
        cost = Cost(prompt=0.1, completion=0.2)
        usage = TokenUsage(prompt_tokens=3, completion_tokens=4)

        assert cost.calculate(usage) == calculate_cost(cost, usage)
