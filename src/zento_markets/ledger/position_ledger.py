"""Local cache of the user's positions and the views derived from it.

The ledger never originates position data: every position set is replaced
wholesale by an authoritative read from the chain. Values, P&L, claim
eligibility, and portfolio aggregates are recomputed from the cache on
every call so there is no second source of truth to drift.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from zento_markets.core.models import BPS_SCALE, ZERO, MarketState, Position
from zento_markets.pricing import calculator

_HUNDRED = Decimal(100)
_SECONDS_PER_DAY = Decimal(86_400)


class PositionStatus(Enum):
    """Lifecycle label of a position relative to its market's resolution."""

    OPEN = "Open"
    CLAIMABLE = "Claimable"
    CLAIMED = "Claimed"
    LOST = "Lost Bet"


@dataclass(frozen=True)
class PnL:
    """Profit and loss of one position at the current price.

    Args:
        absolute: Current value minus cost basis, in wei.
        percent: ``absolute / cost * 100``; zero when the cost basis is zero.

    """

    absolute: int
    percent: Decimal


class PositionLedger:
    """Hold the user's positions per market, replaced only from chain reads."""

    def __init__(self) -> None:
        """Initialize an empty ledger."""
        self._positions: dict[int, tuple[Position, ...]] = {}
        self._claimed: set[tuple[int, int]] = set()

    def upsert_from_chain(self, market_id: int, positions: Iterable[Position]) -> None:
        """Replace the cached positions of a market with an authoritative read.

        Positions are never merged: whatever the chain returned becomes the
        complete set for the market. Applying the same read twice leaves the
        ledger unchanged.

        Args:
            market_id: Market the read belongs to.
            positions: Positions returned by the ledger for that market.

        """
        self._positions[market_id] = tuple(sorted(positions, key=lambda p: p.id))

    def positions(self, market_id: int | None = None) -> list[Position]:
        """Return cached positions, for one market or across all markets."""
        if market_id is not None:
            return list(self._positions.get(market_id, ()))
        return [pos for mid in sorted(self._positions) for pos in self._positions[mid]]

    def get(self, market_id: int, position_id: int) -> Position | None:
        """Return a cached position by market and position ID, if present."""
        for pos in self._positions.get(market_id, ()):
            if pos.id == position_id:
                return pos
        return None

    def market_ids(self) -> list[int]:
        """Return the IDs of markets with at least one cached position."""
        return sorted(mid for mid, positions in self._positions.items() if positions)

    def mark_claimed(self, market_id: int, position_id: int) -> None:
        """Record a confirmed claim so the position stops showing as claimable.

        The mark survives later ``upsert_from_chain`` calls, which may still
        return the position until the chain's indexer catches up.
        """
        self._claimed.add((market_id, position_id))

    def is_claimed(self, market_id: int, position_id: int) -> bool:
        """Return ``True`` if a claim for the position has been confirmed."""
        return (market_id, position_id) in self._claimed

    @staticmethod
    def current_value(position: Position, market: MarketState) -> int:
        """Return the position's mark-to-market value in wei."""
        return int(Decimal(position.shares) * calculator.price(position.outcome, market))

    @staticmethod
    def cost_basis(position: Position) -> int:
        """Return what the position cost at its average entry price, in wei."""
        return position.shares * position.avg_price_bp // BPS_SCALE

    def pnl(self, position: Position, market: MarketState) -> PnL:
        """Compute the position's profit and loss at the current price.

        Args:
            position: Cached position.
            market: Snapshot of the position's market.

        Returns:
            Absolute P&L in wei and the percentage relative to cost.

        """
        cost = self.cost_basis(position)
        absolute = self.current_value(position, market) - cost
        percent = Decimal(absolute) / Decimal(cost) * _HUNDRED if cost else ZERO
        return PnL(absolute=absolute, percent=percent)

    @staticmethod
    def claim_eligible(position: Position, market: MarketState) -> bool:
        """Return ``True`` iff the market is resolved in the position's favour."""
        return market.resolved and position.outcome == market.outcome

    def status(self, position: Position, market: MarketState) -> PositionStatus:
        """Classify a position for display.

        Args:
            position: Cached position.
            market: Snapshot of the position's market.

        Returns:
            ``OPEN`` before resolution; afterwards ``CLAIMED`` once claimed,
            ``CLAIMABLE`` for a winning side, ``LOST`` otherwise.

        """
        if not market.resolved:
            return PositionStatus.OPEN
        if self.is_claimed(position.market_id, position.id):
            return PositionStatus.CLAIMED
        if self.claim_eligible(position, market):
            return PositionStatus.CLAIMABLE
        return PositionStatus.LOST

    def total_value(self, markets: Mapping[int, MarketState]) -> int:
        """Sum the current value of every position whose market is known."""
        return sum(
            self.current_value(pos, markets[pos.market_id])
            for pos in self.positions()
            if pos.market_id in markets
        )

    def total_shares(self) -> int:
        """Sum the shares held across all cached positions."""
        return sum(pos.shares for pos in self.positions())

    def total_cost(self) -> int:
        """Sum the cost basis of all cached positions."""
        return sum(self.cost_basis(pos) for pos in self.positions())

    def unrealized_pnl(self, markets: Mapping[int, MarketState]) -> int:
        """Sum the absolute P&L of every position whose market is known."""
        return sum(
            self.pnl(pos, markets[pos.market_id]).absolute
            for pos in self.positions()
            if pos.market_id in markets
        )

    def win_rate(self, markets: Mapping[int, MarketState]) -> Decimal:
        """Return the share of positions on resolved markets that won.

        Args:
            markets: Market snapshots keyed by ID.

        Returns:
            Win percentage between 0 and 100; zero when no position sits on
            a resolved market.

        """
        wins = 0
        losses = 0
        for pos in self.positions():
            market = markets.get(pos.market_id)
            if market is None or not market.resolved:
                continue
            if pos.outcome == market.outcome:
                wins += 1
            else:
                losses += 1
        resolved = wins + losses
        if resolved == 0:
            return ZERO
        return Decimal(wins) / Decimal(resolved) * _HUNDRED

    def average_hold_days(self, now: int) -> Decimal:
        """Return the mean age of cached positions in days (zero when empty)."""
        positions = self.positions()
        if not positions:
            return ZERO
        total_seconds = sum(Decimal(now - pos.acquired_at) for pos in positions)
        return total_seconds / Decimal(len(positions)) / _SECONDS_PER_DAY
