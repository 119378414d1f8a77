"""Core data models shared across the Zento market client.

Define the immutable value objects (MarketState, Position) that flow
between the ledger gateway, the pricing calculator, the position ledger,
and the trade orchestrator. Token amounts are integers scaled by 10^18
and prices are integer basis points out of 10000; conversion to
``Decimal`` token units happens only at presentation.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

ZERO = Decimal(0)
ONE = Decimal(1)

BPS_SCALE = 10_000
WAD = 10**18

_SECONDS_PER_DAY = 86_400
_SECONDS_PER_HOUR = 3_600
_SECONDS_PER_MINUTE = 60
_PROGRESS_RESOLVED = Decimal(100)
_PROGRESS_ENDED = Decimal(75)
_PROGRESS_TRADING_CAP = Decimal("33.33")


class Outcome(Enum):
    """Side of a binary market, using the contract's ``uint8`` encoding."""

    YES = 1
    NO = 2

    @classmethod
    def parse(cls, value: "str | int | Outcome") -> "Outcome":
        """Return the outcome for a label (``"yes"``/``"no"``) or a contract code.

        Args:
            value: Case-insensitive label, integer code, or an ``Outcome``.

        Returns:
            The matching ``Outcome``.

        Raises:
            ValueError: If the value does not name a known outcome.

        """
        if isinstance(value, Outcome):
            return value
        if isinstance(value, int):
            return cls(value)
        label = value.strip().upper()
        if label in cls.__members__:
            return cls[label]
        msg = f"Outcome must be 'yes' or 'no', got {value!r}"
        raise ValueError(msg)


def to_token_units(wei: int) -> Decimal:
    """Convert a fixed-point token amount to decimal token units for display."""
    return Decimal(wei) / Decimal(WAD)


def to_wei(amount: Decimal | int | str) -> int:
    """Convert a decimal token amount to its 18-decimal fixed-point integer.

    Fractions below one wei are truncated, matching how amounts are sized
    before they cross the ledger boundary.

    Args:
        amount: Token amount as a ``Decimal``, integer, or numeric string.

    Returns:
        Integer amount scaled by 10^18.

    """
    return int(Decimal(str(amount)) * WAD)


@dataclass(frozen=True)
class MarketState:
    """Snapshot of one prediction market as last read from the ledger.

    The client never computes a new market state speculatively: instances
    are only produced by decoding a ledger read.

    Args:
        id: Numeric market identifier.
        title: Market question shown to users.
        resolution_criteria: How the market will be resolved.
        end_time: Unix epoch seconds when trading closes.
        creation_time: Unix epoch seconds when the market was created.
        resolved: Whether the winning outcome has been fixed.
        outcome: Winning outcome once resolved, else ``None``.
        yes_price_bp: YES price in basis points.
        no_price_bp: NO price in basis points.
        total_yes_shares: Outstanding YES shares (wei).
        total_no_shares: Outstanding NO shares (wei).
        participant_count: Number of distinct traders.
        description: Long-form market description.
        creator: Address that created the market.
        oracle: Oracle address responsible for resolution.
        total_liquidity: Liquidity provided to the pools (wei).
        total_value_locked: Collateral locked in the market (wei).

    Raises:
        ValueError: If prices are out of range or do not sum to 10000.

    """

    id: int
    title: str
    resolution_criteria: str
    end_time: int
    creation_time: int
    resolved: bool
    outcome: Outcome | None
    yes_price_bp: int
    no_price_bp: int
    total_yes_shares: int
    total_no_shares: int
    participant_count: int
    description: str = ""
    creator: str = ""
    oracle: str = ""
    total_liquidity: int = 0
    total_value_locked: int = 0

    def __post_init__(self) -> None:
        """Validate the basis-point price invariant."""
        for name, value in (("yes_price_bp", self.yes_price_bp), ("no_price_bp", self.no_price_bp)):
            if not (0 <= value <= BPS_SCALE):
                msg = f"{name} must be between 0 and {BPS_SCALE}, got {value}"
                raise ValueError(msg)
        if self.yes_price_bp + self.no_price_bp != BPS_SCALE:
            msg = (
                f"yes_price_bp + no_price_bp must equal {BPS_SCALE}, "
                f"got {self.yes_price_bp} + {self.no_price_bp}"
            )
            raise ValueError(msg)

    def price_bp(self, side: Outcome) -> int:
        """Return the basis-point price of one side."""
        return self.yes_price_bp if side is Outcome.YES else self.no_price_bp

    def pool(self, side: Outcome) -> int:
        """Return the outstanding share pool of one side."""
        return self.total_yes_shares if side is Outcome.YES else self.total_no_shares

    @property
    def total_shares(self) -> int:
        """Return the combined YES and NO share supply."""
        return self.total_yes_shares + self.total_no_shares

    def is_closed(self, now: int) -> bool:
        """Return ``True`` once the market's end time has passed."""
        return now >= self.end_time

    def time_left(self, now: int) -> str:
        """Format the time remaining until the market closes.

        Args:
            now: Current Unix epoch seconds.

        Returns:
            ``"Ended"`` after close, otherwise the two most significant units
            (``"3d 4h"``, ``"4h 12m"``, or ``"12m"``).

        """
        seconds_left = self.end_time - now
        if seconds_left <= 0:
            return "Ended"
        days = seconds_left // _SECONDS_PER_DAY
        hours = (seconds_left % _SECONDS_PER_DAY) // _SECONDS_PER_HOUR
        minutes = (seconds_left % _SECONDS_PER_HOUR) // _SECONDS_PER_MINUTE
        if days > 0:
            return f"{days}d {hours}h"
        if hours > 0:
            return f"{hours}h {minutes}m"
        return f"{minutes}m"

    def progress_pct(self, now: int) -> Decimal:
        """Return the lifecycle progress shown on the market timeline.

        Trading occupies the first third of the bar, closing jumps to 75%
        and resolution completes it.

        Args:
            now: Current Unix epoch seconds.

        Returns:
            Progress percentage between 0 and 100.

        """
        if self.resolved:
            return _PROGRESS_RESOLVED
        if now >= self.end_time:
            return _PROGRESS_ENDED
        if now < self.creation_time or self.end_time <= self.creation_time:
            return ZERO
        elapsed = Decimal(now - self.creation_time)
        total = Decimal(self.end_time - self.creation_time)
        return min(elapsed / total * _PROGRESS_TRADING_CAP, _PROGRESS_TRADING_CAP)


@dataclass(frozen=True)
class Position:
    """A user's stake in one outcome of one market, as held on the ledger.

    Args:
        id: Position identifier assigned by the contract.
        owner: Wallet address holding the position.
        market_id: Market the position belongs to.
        outcome: Side the shares were bought on.
        shares: Share count (wei).
        avg_price_bp: Volume-weighted entry price in basis points.
        acquired_at: Unix epoch seconds of the (first) purchase.

    """

    id: int
    owner: str
    market_id: int
    outcome: Outcome
    shares: int
    avg_price_bp: int
    acquired_at: int
