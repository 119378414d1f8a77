"""Result and snapshot types produced by the trade orchestrator."""

from collections.abc import Callable
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from zento_markets.core.models import MarketState, Position
from zento_markets.ledger.position_ledger import PnL, PositionStatus

StatusCallback = Callable[[str], None]


class TradeAction(Enum):
    """Pipeline that produced a ``TradeResult``."""

    CREATE_MARKET = "create_market"
    BUY = "buy"
    SELL = "sell"
    CLAIM = "claim"


class FailureKind(Enum):
    """Why a pipeline stopped before (or at) its write."""

    VALIDATION = "validation"
    PRECONDITION = "precondition"
    CONNECT_WALLET = "connect_wallet"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    PRICE_UNAVAILABLE = "price_unavailable"
    APPROVAL_FAILED = "approval_failed"
    INVALID_END_TIME = "invalid_end_time"
    INSUFFICIENT_LIQUIDITY = "insufficient_liquidity"
    SLIPPAGE_EXCEEDED = "slippage_exceeded"
    NOT_ELIGIBLE = "not_eligible"
    BUSY = "busy"
    GENERIC = "generic"


@dataclass(frozen=True)
class TradeResult:
    """Single user-visible outcome of one pipeline run.

    Args:
        action: Pipeline that ran.
        success: Whether the final write was confirmed.
        message: Final user-facing message.
        failure: Failure classification when ``success`` is ``False``.
        tx_hash: Hash of the final write, when one was mined.
        statuses: Every status line emitted during the run, in order.

    """

    action: TradeAction
    success: bool
    message: str
    failure: FailureKind | None = None
    tx_hash: str | None = None
    statuses: tuple[str, ...] = ()


@dataclass(frozen=True)
class PositionView:
    """A cached position joined with its market's current state.

    ``market``, ``pnl`` and ``status`` are ``None`` while the market has not
    been read yet; ``current_value`` is then zero.
    """

    position: Position
    market: MarketState | None
    current_value: int
    pnl: PnL | None
    status: PositionStatus | None


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Point-in-time view of the user's balance, markets and positions.

    Args:
        balance: Token balance in wei.
        markets: Cached market states keyed by ID.
        positions: Per-position views.
        total_value: Sum of position values in wei.
        total_shares: Sum of shares held in wei.
        total_cost: Sum of position cost bases in wei.
        unrealized_pnl: Sum of absolute P&L in wei.
        win_rate: Percentage of positions on resolved markets that won.
        average_hold_days: Mean position age in days.

    """

    balance: int
    markets: dict[int, MarketState] = field(default_factory=dict)
    positions: tuple[PositionView, ...] = ()
    total_value: int = 0
    total_shares: int = 0
    total_cost: int = 0
    unrealized_pnl: int = 0
    win_rate: Decimal = Decimal(0)
    average_hold_days: Decimal = Decimal(0)
