"""Client-side price, payout, and slippage estimates for binary markets.

Mirror the on-chain pricing closely enough to size a slippage guard and to
show an expected payout before a trade is submitted. The authoritative
price is always the one the contract computes; these functions only feed
display and the ``maxPrice`` bound sent with a buy.

Every function is pure and total: malformed input (non-positive amounts,
zero prices) yields ``0`` rather than raising, because the results are
only ever shown or used as an upper bound.
"""

from decimal import ROUND_CEILING, Decimal

from zento_markets.core.models import BPS_SCALE, ZERO, MarketState, Outcome

FEE_RATE = Decimal("0.01")
EMPTY_MARKET_SLIPPAGE_BPS = 5_000
SLIPPAGE_MARGIN_BPS = 50
MIN_SLIPPAGE_BPS = 100

_BPS = Decimal(BPS_SCALE)


def price(side: Outcome, market: MarketState) -> Decimal:
    """Return the implied probability of one side.

    Args:
        side: Outcome to price.
        market: Current market snapshot.

    Returns:
        Probability between 0 and 1 (``price_bp / 10000``).

    """
    price_bp = market.price_bp(side)
    if not (0 < price_bp <= BPS_SCALE):
        return ZERO
    return Decimal(price_bp) / _BPS


def payout(side: Outcome, amount_in: int, market: MarketState) -> int:
    """Estimate the shares received for a stake, after the trading fee.

    Deduct the fixed 1% fee, then divide the remainder by the side's price:
    ``shares = amount_in * (1 - fee) / price``.

    Args:
        side: Outcome being bought.
        amount_in: Stake in wei.
        market: Current market snapshot.

    Returns:
        Estimated shares in wei, or ``0`` for a non-positive stake or an
        unpriced side.

    """
    price_bp = market.price_bp(side)
    if amount_in <= 0 or not (0 < price_bp <= BPS_SCALE):
        return 0
    amount_after_fee = Decimal(amount_in) * (1 - FEE_RATE)
    return int(amount_after_fee * _BPS / Decimal(price_bp))


def price_impact_bps(side: Outcome, amount_in: int, market: MarketState) -> int:
    """Estimate how far a buy moves the side's price, in basis points.

    Simulate adding the estimated ``payout`` shares to the side's pool:
    ``new_price = (pool + shares) / (total + shares)`` and measure the
    distance from the quoted price. The pool ratio moves monotonically
    towards 1 as shares are added, so the distance is taken against the
    larger of the pre-trade and post-trade drift; this keeps the estimate
    non-decreasing in ``amount_in`` even when the quoted price and the pool
    ratio disagree. When the pool ratio equals the quoted price the result
    is exactly ``|new_price * 10000 - price_bp|``.

    Args:
        side: Outcome being bought.
        amount_in: Stake in wei.
        market: Current market snapshot.

    Returns:
        Price impact in whole basis points, rounded up. ``0`` when the
        market holds no shares or the stake is non-positive.

    """
    total = market.total_shares
    if total <= 0 or amount_in <= 0:
        return 0
    shares_out = payout(side, amount_in, market)
    quoted_bp = Decimal(market.price_bp(side))
    pool = Decimal(market.pool(side))

    before_bp = pool * _BPS / Decimal(total)
    after_bp = (pool + shares_out) * _BPS / Decimal(total + shares_out)
    impact = max(abs(after_bp - quoted_bp), abs(before_bp - quoted_bp))
    return int(impact.to_integral_value(rounding=ROUND_CEILING))


def slippage_bound(side: Outcome, amount_in: int, market: MarketState) -> int:
    """Return the slippage tolerance, in basis points, for a buy.

    An empty market has no meaningful price yet, so allow a wide 50% bound.
    Otherwise add a 0.5% margin to the simulated impact, never going below
    a 1% floor.

    Args:
        side: Outcome being bought.
        amount_in: Stake in wei.
        market: Current market snapshot.

    Returns:
        Slippage bound in basis points (always at least 100).

    """
    if market.total_shares <= 0:
        return EMPTY_MARKET_SLIPPAGE_BPS
    impact = price_impact_bps(side, amount_in, market)
    return max(impact + SLIPPAGE_MARGIN_BPS, MIN_SLIPPAGE_BPS)


def max_price(quoted_price: int, slippage_bps: int) -> int:
    """Apply a slippage bound to a quoted on-chain price.

    Args:
        quoted_price: Price returned by ``calculateOutcomePrice``.
        slippage_bps: Tolerance in basis points.

    Returns:
        ``quoted_price * (1 + slippage_bps / 10000)``, truncated.

    """
    if quoted_price <= 0 or slippage_bps < 0:
        return 0
    return quoted_price * (BPS_SCALE + slippage_bps) // BPS_SCALE
