"""Tests for the local position ledger."""

from decimal import Decimal

import pytest

from zento_markets.core.models import WAD, MarketState, Outcome, Position
from zento_markets.ledger.position_ledger import PositionLedger, PositionStatus

_NOW = 1_700_000_000
_DAY = 86_400
_OWNER = "0xabc"


def _make_market(
    market_id: int = 1,
    *,
    yes_bp: int = 5_000,
    resolved: bool = False,
    outcome: Outcome | None = None,
) -> MarketState:
    """Create a MarketState for ledger tests.

    Args:
        market_id: Market identifier.
        yes_bp: YES price in basis points.
        resolved: Whether the market is resolved.
        outcome: Winning outcome when resolved.

    Returns:
        MarketState instance.

    """
    return MarketState(
        id=market_id,
        title=f"Market {market_id}",
        resolution_criteria="criteria",
        end_time=_NOW + _DAY,
        creation_time=_NOW - _DAY,
        resolved=resolved,
        outcome=outcome,
        yes_price_bp=yes_bp,
        no_price_bp=10_000 - yes_bp,
        total_yes_shares=10 * WAD,
        total_no_shares=10 * WAD,
        participant_count=1,
    )


def _make_position(
    position_id: int = 1,
    market_id: int = 1,
    outcome: Outcome = Outcome.YES,
    shares: int = 10 * WAD,
    avg_price_bp: int = 4_000,
    acquired_at: int = _NOW - _DAY,
) -> Position:
    """Create a Position for ledger tests."""
    return Position(
        id=position_id,
        owner=_OWNER,
        market_id=market_id,
        outcome=outcome,
        shares=shares,
        avg_price_bp=avg_price_bp,
        acquired_at=acquired_at,
    )


class TestUpsert:
    """Tests for replacing cached positions from chain reads."""

    def test_upsert_is_idempotent(self) -> None:
        """Applying the same read twice leaves the ledger unchanged."""
        ledger = PositionLedger()
        read = [_make_position(2), _make_position(1)]
        ledger.upsert_from_chain(1, read)
        first = ledger.positions(1)
        ledger.upsert_from_chain(1, read)
        assert ledger.positions(1) == first
        assert [p.id for p in first] == [1, 2]

    def test_upsert_replaces_not_merges(self) -> None:
        """Drop positions missing from the latest read."""
        ledger = PositionLedger()
        ledger.upsert_from_chain(1, [_make_position(1), _make_position(2)])
        ledger.upsert_from_chain(1, [_make_position(2)])
        assert [p.id for p in ledger.positions(1)] == [2]

    def test_positions_across_markets(self) -> None:
        """List positions of every market ordered by market ID."""
        ledger = PositionLedger()
        ledger.upsert_from_chain(3, [_make_position(5, market_id=3)])
        ledger.upsert_from_chain(1, [_make_position(1)])
        ledger.upsert_from_chain(2, [])
        assert [p.market_id for p in ledger.positions()] == [1, 3]
        assert ledger.market_ids() == [1, 3]

    def test_get(self) -> None:
        """Look up a position by market and ID."""
        ledger = PositionLedger()
        ledger.upsert_from_chain(1, [_make_position(1)])
        assert ledger.get(1, 1) is not None
        assert ledger.get(1, 9) is None
        assert ledger.get(2, 1) is None


class TestValuation:
    """Tests for value and P&L."""

    def test_current_value_and_cost(self) -> None:
        """Value shares at the current price and cost them at the entry price."""
        pos = _make_position(shares=10 * WAD, avg_price_bp=4_000)
        market = _make_market(yes_bp=5_000)
        assert PositionLedger.current_value(pos, market) == 5 * WAD
        assert PositionLedger.cost_basis(pos) == 4 * WAD

    def test_pnl(self) -> None:
        """Compute absolute and percentage P&L."""
        pos = _make_position(shares=10 * WAD, avg_price_bp=4_000)
        pnl = PositionLedger().pnl(pos, _make_market(yes_bp=5_000))
        assert pnl.absolute == WAD
        assert pnl.percent == Decimal(25)

    def test_pnl_zero_cost(self) -> None:
        """Report zero percent when the cost basis is zero."""
        pos = _make_position(avg_price_bp=0)
        pnl = PositionLedger().pnl(pos, _make_market())
        assert pnl.percent == 0


class TestClaims:
    """Tests for claim eligibility and status."""

    def test_open_before_resolution(self) -> None:
        """Label positions on unresolved markets as open."""
        ledger = PositionLedger()
        assert ledger.status(_make_position(), _make_market()) is PositionStatus.OPEN

    def test_winner_is_claimable(self) -> None:
        """Allow a claim only for the winning side."""
        ledger = PositionLedger()
        market = _make_market(resolved=True, outcome=Outcome.YES)
        assert ledger.claim_eligible(_make_position(outcome=Outcome.YES), market)
        assert not ledger.claim_eligible(_make_position(outcome=Outcome.NO), market)
        assert ledger.status(_make_position(), market) is PositionStatus.CLAIMABLE
        assert ledger.status(_make_position(outcome=Outcome.NO), market) is PositionStatus.LOST

    def test_claimed_mark_survives_upsert(self) -> None:
        """Keep showing a claimed position as claimed after a re-read."""
        ledger = PositionLedger()
        market = _make_market(resolved=True, outcome=Outcome.YES)
        ledger.upsert_from_chain(1, [_make_position(1)])
        ledger.mark_claimed(1, 1)
        ledger.upsert_from_chain(1, [_make_position(1)])
        assert ledger.is_claimed(1, 1)
        assert ledger.status(_make_position(1), market) is PositionStatus.CLAIMED


class TestAggregates:
    """Tests for portfolio aggregates."""

    @pytest.fixture
    def ledger(self) -> PositionLedger:
        """Create a ledger with one open, one won and one lost position."""
        ledger = PositionLedger()
        ledger.upsert_from_chain(1, [_make_position(1, market_id=1, acquired_at=_NOW - _DAY)])
        ledger.upsert_from_chain(
            2, [_make_position(2, market_id=2, outcome=Outcome.YES, acquired_at=_NOW - 2 * _DAY)]
        )
        ledger.upsert_from_chain(
            3, [_make_position(3, market_id=3, outcome=Outcome.NO, acquired_at=_NOW - 3 * _DAY)]
        )
        return ledger

    @pytest.fixture
    def markets(self) -> dict[int, MarketState]:
        """Return markets: 1 open, 2 and 3 resolved YES."""
        return {
            1: _make_market(1),
            2: _make_market(2, yes_bp=10_000, resolved=True, outcome=Outcome.YES),
            3: _make_market(3, yes_bp=10_000, resolved=True, outcome=Outcome.YES),
        }

    def test_win_rate(self, ledger: PositionLedger, markets: dict[int, MarketState]) -> None:
        """Count only positions on resolved markets."""
        assert ledger.win_rate(markets) == Decimal(50)

    def test_win_rate_without_resolved(self, ledger: PositionLedger) -> None:
        """Return zero when no position sits on a resolved market."""
        assert ledger.win_rate({1: _make_market(1)}) == 0

    def test_totals(self, ledger: PositionLedger, markets: dict[int, MarketState]) -> None:
        """Sum shares, cost, value and P&L."""
        assert ledger.total_shares() == 30 * WAD
        assert ledger.total_cost() == 12 * WAD
        # 5 (open at 50%) + 10 (won) + 0 (lost)
        assert ledger.total_value(markets) == 15 * WAD
        assert ledger.unrealized_pnl(markets) == 3 * WAD

    def test_totals_skip_unknown_markets(self, ledger: PositionLedger) -> None:
        """Leave positions without a cached market out of value sums."""
        assert ledger.total_value({1: _make_market(1)}) == 5 * WAD

    def test_average_hold_days(self, ledger: PositionLedger) -> None:
        """Average the age of positions in days."""
        assert ledger.average_hold_days(_NOW) == Decimal(2)
        assert PositionLedger().average_hold_days(_NOW) == 0
