"""Tests for the client-side pricing calculator."""

from decimal import Decimal

import pytest

from zento_markets.core.models import WAD, MarketState, Outcome
from zento_markets.pricing import calculator

_STAKE = 100 * WAD
_EXPECTED_SHARES = 165 * WAD
_EMPTY_BOUND = 5_000
_FLOOR_BOUND = 100


def _make_market(
    yes_bp: int = 6_000,
    yes_shares: int = 60 * WAD,
    no_shares: int = 40 * WAD,
) -> MarketState:
    """Create a MarketState for pricing tests.

    Args:
        yes_bp: YES price in basis points.
        yes_shares: YES pool size in wei.
        no_shares: NO pool size in wei.

    Returns:
        MarketState instance.

    """
    return MarketState(
        id=1,
        title="Will it rain?",
        resolution_criteria="Met office",
        end_time=2_000_000_000,
        creation_time=1_700_000_000,
        resolved=False,
        outcome=None,
        yes_price_bp=yes_bp,
        no_price_bp=10_000 - yes_bp,
        total_yes_shares=yes_shares,
        total_no_shares=no_shares,
        participant_count=2,
    )


class TestPrice:
    """Tests for calculator.price."""

    def test_price_is_probability(self) -> None:
        """Convert basis points to a probability."""
        market = _make_market()
        assert calculator.price(Outcome.YES, market) == Decimal("0.6")
        assert calculator.price(Outcome.NO, market) == Decimal("0.4")

    def test_zero_price(self) -> None:
        """Return zero for an unpriced side."""
        market = _make_market(yes_bp=10_000)
        assert calculator.price(Outcome.NO, market) == 0


class TestPayout:
    """Tests for calculator.payout."""

    def test_payout_after_fee(self) -> None:
        """Deduct the 1% fee and divide by the side's price."""
        assert calculator.payout(Outcome.YES, _STAKE, _make_market()) == _EXPECTED_SHARES

    @pytest.mark.parametrize("amount", [0, -WAD])
    def test_non_positive_stake(self, amount: int) -> None:
        """Return zero for a non-positive stake."""
        assert calculator.payout(Outcome.YES, amount, _make_market()) == 0

    def test_unpriced_side(self) -> None:
        """Return zero when the side has no price."""
        market = _make_market(yes_bp=0)
        assert calculator.payout(Outcome.YES, _STAKE, market) == 0


class TestPriceImpact:
    """Tests for calculator.price_impact_bps."""

    def test_empty_market_has_no_impact(self) -> None:
        """Return zero when the market holds no shares."""
        market = _make_market(yes_shares=0, no_shares=0)
        assert calculator.price_impact_bps(Outcome.YES, _STAKE, market) == 0

    def test_matches_new_price_distance_when_pool_agrees(self) -> None:
        """Equal the distance to the post-trade pool price when pool and quote agree."""
        market = _make_market()
        # (60 + 165) / (100 + 165) = 8490.57bp, 2490.57bp above the quote
        assert calculator.price_impact_bps(Outcome.YES, _STAKE, market) == 2_491

    def test_impact_is_monotone(self) -> None:
        """Never decrease as the stake grows."""
        market = _make_market()
        impacts = [
            calculator.price_impact_bps(Outcome.YES, amount * WAD, market)
            for amount in (1, 10, 100, 1_000, 10_000)
        ]
        assert impacts == sorted(impacts)
        assert impacts[-1] > impacts[0]

    def test_impact_monotone_when_pools_disagree_with_price(self) -> None:
        """Stay non-decreasing even when the quoted price differs from the pool ratio."""
        market = _make_market(yes_bp=5_000, yes_shares=20 * WAD, no_shares=80 * WAD)
        impacts = [
            calculator.price_impact_bps(Outcome.YES, amount * WAD, market)
            for amount in (1, 10, 50, 100, 500)
        ]
        assert impacts == sorted(impacts)


class TestSlippageBound:
    """Tests for calculator.slippage_bound."""

    def test_empty_market_bound(self) -> None:
        """Allow a wide bound on an empty market."""
        market = _make_market(yes_shares=0, no_shares=0)
        assert calculator.slippage_bound(Outcome.YES, _STAKE, market) == _EMPTY_BOUND

    def test_floor(self) -> None:
        """Never go below the 1% floor."""
        assert calculator.slippage_bound(Outcome.YES, 1, _make_market()) == _FLOOR_BOUND

    def test_margin_added_to_impact(self) -> None:
        """Add the 0.5% margin on top of a large impact."""
        market = _make_market()
        stake = 1_000 * WAD
        impact = calculator.price_impact_bps(Outcome.YES, stake, market)
        bound = calculator.slippage_bound(Outcome.YES, stake, market)
        assert bound == max(impact + calculator.SLIPPAGE_MARGIN_BPS, _FLOOR_BOUND)
        assert bound >= _FLOOR_BOUND


class TestMaxPrice:
    """Tests for calculator.max_price."""

    def test_applies_tolerance(self) -> None:
        """Scale the quoted price up by the slippage tolerance."""
        assert calculator.max_price(6_000, 100) == 6_060

    def test_invalid_inputs(self) -> None:
        """Return zero for a missing price or negative tolerance."""
        assert calculator.max_price(0, 100) == 0
        assert calculator.max_price(6_000, -1) == 0
