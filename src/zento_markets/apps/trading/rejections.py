"""Map ledger write rejections to a failure kind and a user-facing message.

A rejection is matched on its structured custom-error code first and on
a case-insensitive substring of the revert reason second. Anything left
falls through to the pipeline's generic failure message.
"""

from dataclasses import dataclass

from zento_markets.apps.trading.models import FailureKind, TradeAction
from zento_markets.clients.chain.exceptions import LedgerWriteError


@dataclass(frozen=True)
class _Rule:
    code: str
    needles: tuple[str, ...]
    kind: FailureKind
    message: str


_RULES: dict[TradeAction, tuple[_Rule, ...]] = {
    TradeAction.CREATE_MARKET: (
        _Rule(
            "InvalidEndTime",
            ("invalid end time",),
            FailureKind.INVALID_END_TIME,
            "Market must be ≥1 hour long.",
        ),
        _Rule(
            "InsufficientLiquidity",
            ("insufficient liquidity",),
            FailureKind.INSUFFICIENT_LIQUIDITY,
            "Need ≥ {min_liquidity} {symbol}.",
        ),
    ),
    TradeAction.BUY: (
        _Rule(
            "SlippageExceeded",
            ("slippage", "price too high"),
            FailureKind.SLIPPAGE_EXCEEDED,
            "Price moved beyond your slippage limit. Try again.",
        ),
        _Rule(
            "InsufficientBalance",
            ("insufficient balance", "exceeds balance"),
            FailureKind.INSUFFICIENT_BALANCE,
            "Insufficient {symbol} balance",
        ),
        _Rule(
            "InvalidEndTime",
            ("market ended", "trading ended", "market closed"),
            FailureKind.PRECONDITION,
            "Trading has ended for this market.",
        ),
    ),
    TradeAction.SELL: (
        _Rule(
            "SlippageExceeded",
            ("slippage", "price too low"),
            FailureKind.SLIPPAGE_EXCEEDED,
            "Price moved below your minimum. Try again.",
        ),
    ),
    TradeAction.CLAIM: (
        _Rule(
            "",
            ("not winning", "not resolved", "already claimed"),
            FailureKind.NOT_ELIGIBLE,
            "This position has nothing to claim.",
        ),
    ),
}

GENERIC_MESSAGES: dict[TradeAction, str] = {
    TradeAction.CREATE_MARKET: "Failed to create market.",
    TradeAction.BUY: "Buy failed.",
    TradeAction.SELL: "Sell failed.",
    TradeAction.CLAIM: "Claim failed.",
}


def classify_rejection(
    action: TradeAction,
    error: LedgerWriteError,
    *,
    symbol: str = "USDT",
    min_liquidity: str = "",
) -> tuple[FailureKind, str]:
    """Classify a rejected write.

    Args:
        action: Pipeline whose write was rejected.
        error: Rejection raised by the ledger client.
        symbol: Token symbol used in messages.
        min_liquidity: Minimum initial liquidity, formatted for display.

    Returns:
        ``(kind, message)`` for the first matching rule, else
        ``(FailureKind.GENERIC, <generic message for the action>)``.

    """
    rules = _RULES.get(action, ())
    matched = next((rule for rule in rules if error.code and rule.code == error.code), None)
    if matched is None:
        reason = error.reason.lower()
        matched = next(
            (rule for rule in rules if any(needle in reason for needle in rule.needles)),
            None,
        )
    if matched is None:
        return FailureKind.GENERIC, GENERIC_MESSAGES[action]
    return matched.kind, matched.message.format(symbol=symbol, min_liquidity=min_liquidity)
