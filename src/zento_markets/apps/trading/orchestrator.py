"""Drive buy, sell, claim and create-market pipelines against the ledger.

Each pipeline is a fixed sequence of precondition checks, concurrent
reads, an optional token approval and a single final write. Any failed
step stops the pipeline and yields exactly one user-visible message; the
final write is never attempted after an earlier failure. After a
confirmed write the orchestrator refreshes its caches with a best-effort
batch and only returns once that batch has settled.

Only one pipeline runs at a time. A call made while another is in flight
fails fast with ``FailureKind.BUSY``.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from decimal import Decimal
from typing import Any

from zento_markets.apps.proposal.models import Proposal
from zento_markets.apps.trading.models import (
    FailureKind,
    PortfolioSnapshot,
    PositionView,
    StatusCallback,
    TradeAction,
    TradeResult,
)
from zento_markets.apps.trading.rejections import GENERIC_MESSAGES, classify_rejection
from zento_markets.clients.backend.client import BackendClient
from zento_markets.clients.chain.client import LedgerClient
from zento_markets.clients.chain.exceptions import LedgerError, LedgerWriteError
from zento_markets.core.concurrency import settle_all
from zento_markets.core.config import TradingConfig
from zento_markets.core.models import MarketState, Outcome, to_token_units, to_wei
from zento_markets.core.timestamps import parse_end_date
from zento_markets.ledger.position_ledger import PositionLedger
from zento_markets.pricing import calculator

logger = logging.getLogger(__name__)

_DEFAULT_RESOLUTION = "Resolved via official sources."
_CREATE_FALLBACK_MESSAGE = "Transaction failed. Try again."
_CONNECT_WALLET_MESSAGE = "Please connect your wallet first."


def _format_amount(value: Decimal) -> str:
    """Format a token amount without trailing zeros (``2``, ``2.5``)."""
    text = f"{value:f}"
    return text.rstrip("0").rstrip(".") if "." in text else text


async def _resolved(value: Any) -> Any:
    return value


class _StatusLog:
    """Collect status lines and forward each one to an optional callback."""

    def __init__(self, action: TradeAction, on_status: StatusCallback | None) -> None:
        self.action = action
        self._on_status = on_status
        self.lines: list[str] = []

    def emit(self, line: str) -> None:
        self.lines.append(line)
        if self._on_status is not None:
            self._on_status(line)

    def fail(self, kind: FailureKind, message: str) -> TradeResult:
        self.emit(message)
        return TradeResult(
            action=self.action,
            success=False,
            message=message,
            failure=kind,
            statuses=tuple(self.lines),
        )

    def succeed(self, message: str, tx_hash: str) -> TradeResult:
        self.emit(message)
        return TradeResult(
            action=self.action,
            success=True,
            message=message,
            tx_hash=tx_hash,
            statuses=tuple(self.lines),
        )


class TradeOrchestrator:
    """Run trade pipelines and keep market, balance and position caches fresh.

    Args:
        ledger: Async client for the market and token contracts.
        config: Token symbol and liquidity defaults.
        oracle: Oracle address passed to ``createMarket``.
        backend: Reward backend; when ``None`` no points are awarded.
        positions: Position cache; a fresh one is created when omitted.
        clock: Returns the current Unix time in seconds.

    """

    def __init__(
        self,
        ledger: LedgerClient,
        config: TradingConfig,
        oracle: str,
        backend: BackendClient | None = None,
        positions: PositionLedger | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        """Initialize the orchestrator with empty caches.

        Args:
            ledger: Async client for the market and token contracts.
            config: Token symbol and liquidity defaults.
            oracle: Oracle address passed to ``createMarket``.
            backend: Reward backend; when ``None`` no points are awarded.
            positions: Position cache; a fresh one is created when omitted.
            clock: Returns the current Unix time in seconds.

        """
        self._ledger = ledger
        self._config = config
        self._oracle = oracle
        self._backend = backend
        self.positions = positions if positions is not None else PositionLedger()
        self._clock = clock or (lambda: int(time.time()))
        self._markets: dict[int, MarketState] = {}
        self._min_liquidity = to_wei(config.default_min_liquidity)
        self.balance = 0
        self.loading = False

    @property
    def markets(self) -> dict[int, MarketState]:
        """Return a copy of the cached market states keyed by ID."""
        return dict(self._markets)

    @property
    def min_liquidity(self) -> Decimal:
        """Return the last known minimum initial liquidity in token units."""
        return to_token_units(self._min_liquidity)

    async def _exclusive(
        self,
        action: TradeAction,
        pipeline: Callable[[], Awaitable[TradeResult]],
        on_status: StatusCallback | None,
    ) -> TradeResult:
        """Run a pipeline unless another one is already in flight."""
        if self.loading:
            logger.info("Rejecting %s: another transaction is in progress", action.value)
            return _StatusLog(action, on_status).fail(
                FailureKind.BUSY, "Another transaction is in progress."
            )
        self.loading = True
        try:
            return await pipeline()
        finally:
            self.loading = False

    async def _read_or(self, label: str, read: Awaitable[Any], default: Any) -> Any:
        """Await a read, substituting ``default`` when it fails."""
        try:
            return await read
        except LedgerError:
            logger.warning("Read %s failed, using %r", label, default, exc_info=True)
            return default

    async def _award_points(self, amount: Decimal, market_id: int) -> None:
        if self._backend is None or self._ledger.account_address is None:
            return
        await self._backend.award_points(
            wallet_address=self._ledger.account_address,
            points=float(amount),
            action_type=f"buy_{market_id}",
            description=f"Bet {_format_amount(amount)} {self._config.token_symbol}",
        )

    # ------------------------------------------------------------------
    # Buy
    # ------------------------------------------------------------------

    async def buy(
        self,
        market_id: int,
        side: Outcome,
        amount: Decimal,
        *,
        slippage_bps: int | None = None,
        on_status: StatusCallback | None = None,
    ) -> TradeResult:
        """Buy ``amount`` tokens' worth of one side of a market.

        Args:
            market_id: Market to trade.
            side: Outcome to buy.
            amount: Stake in token units.
            slippage_bps: Explicit slippage tolerance; computed from the
                market's pools when omitted.
            on_status: Receives every status line as it is emitted.

        Returns:
            The pipeline's single outcome.

        """
        return await self._exclusive(
            TradeAction.BUY,
            lambda: self._buy(market_id, side, amount, slippage_bps, on_status),
            on_status,
        )

    async def _buy(
        self,
        market_id: int,
        side: Outcome,
        amount: Decimal,
        slippage_bps: int | None,
        on_status: StatusCallback | None,
    ) -> TradeResult:
        log = _StatusLog(TradeAction.BUY, on_status)
        symbol = self._config.token_symbol
        account = self._ledger.account_address
        if account is None:
            return log.fail(FailureKind.CONNECT_WALLET, _CONNECT_WALLET_MESSAGE)
        amount_wei = to_wei(amount)
        if amount_wei <= 0:
            return log.fail(FailureKind.VALIDATION, "Enter an amount greater than zero.")

        market = self._markets.get(market_id)
        market_read = (
            self._read_or("market", self._ledger.get_market_details(market_id), None)
            if market is None
            else _resolved(market)
        )
        price, allowance, balance, market = await asyncio.gather(
            self._read_or("price", self._ledger.calculate_outcome_price(market_id, side), 0),
            self._read_or("allowance", self._ledger.allowance(account), 0),
            self._read_or("balance", self._ledger.balance_of(account), 0),
            market_read,
        )
        if market is not None:
            self._markets[market_id] = market

        if balance < amount_wei:
            return log.fail(FailureKind.INSUFFICIENT_BALANCE, f"Insufficient {symbol} balance")
        if price == 0:
            return log.fail(FailureKind.PRICE_UNAVAILABLE, "Could not fetch market price")

        if allowance < amount_wei:
            log.emit(f"Approving {symbol}…")
            try:
                await self._ledger.approve(amount_wei)
            except LedgerError:
                logger.exception("Approval for market %d failed", market_id)
                return log.fail(FailureKind.APPROVAL_FAILED, "Approval failed")
            log.emit(f"{symbol} approved!")

        if slippage_bps is None:
            slippage_bps = (
                calculator.slippage_bound(side, amount_wei, market)
                if market is not None
                else calculator.EMPTY_MARKET_SLIPPAGE_BPS
            )
        max_price = calculator.max_price(price, slippage_bps)
        logger.info(
            "Buying %s in market %d: amount=%d price=%d slippage=%dbps max_price=%d",
            side.name,
            market_id,
            amount_wei,
            price,
            slippage_bps,
            max_price,
        )

        try:
            tx_hash = await self._ledger.buy_position(market_id, side, amount_wei, max_price)
        except LedgerWriteError as exc:
            logger.exception("Buy in market %d rejected", market_id)
            kind, message = classify_rejection(TradeAction.BUY, exc, symbol=symbol)
            return log.fail(kind, message)
        except LedgerError:
            logger.exception("Buy in market %d failed", market_id)
            return log.fail(FailureKind.GENERIC, GENERIC_MESSAGES[TradeAction.BUY])

        await settle_all(
            {
                "balance": self.refresh_balance(),
                "markets": self.refresh_markets(),
                "points": self._award_points(amount, market_id),
                "market": self.refresh_market(market_id),
                "positions": self.refresh_positions(market_id),
            }
        )
        return log.succeed(f"Bought {side.name} for {amount:.2f} {symbol}", tx_hash)

    # ------------------------------------------------------------------
    # Sell
    # ------------------------------------------------------------------

    async def sell(
        self,
        market_id: int,
        position_id: int,
        shares: int | None = None,
        *,
        min_price_bp: int | None = None,
        on_status: StatusCallback | None = None,
    ) -> TradeResult:
        """Sell shares of a position back to the market.

        Args:
            market_id: Market the position belongs to.
            position_id: Position to sell from.
            shares: Shares to sell in wei; the whole position when omitted.
            min_price_bp: Lowest acceptable price; defaults to the cached
                current price of the position's side.
            on_status: Receives every status line as it is emitted.

        Returns:
            The pipeline's single outcome.

        """
        return await self._exclusive(
            TradeAction.SELL,
            lambda: self._sell(market_id, position_id, shares, min_price_bp, on_status),
            on_status,
        )

    async def _sell(
        self,
        market_id: int,
        position_id: int,
        shares: int | None,
        min_price_bp: int | None,
        on_status: StatusCallback | None,
    ) -> TradeResult:
        log = _StatusLog(TradeAction.SELL, on_status)
        if self._ledger.account_address is None:
            return log.fail(FailureKind.CONNECT_WALLET, _CONNECT_WALLET_MESSAGE)

        position = self.positions.get(market_id, position_id)
        if position is None:
            await self._read_or("positions", self.refresh_positions(market_id), None)
            position = self.positions.get(market_id, position_id)
        if position is None:
            return log.fail(FailureKind.PRECONDITION, "Position not found.")

        shares = position.shares if shares is None else shares
        if shares <= 0:
            return log.fail(FailureKind.VALIDATION, "Enter a share amount greater than zero.")
        if shares > position.shares:
            return log.fail(FailureKind.VALIDATION, "Cannot sell more shares than you hold.")

        if min_price_bp is None:
            market = self._markets.get(market_id)
            if market is None:
                market = await self._read_or("market", self.refresh_market(market_id), None)
            if market is None:
                return log.fail(FailureKind.PRICE_UNAVAILABLE, "Could not fetch market price")
            min_price_bp = market.price_bp(position.outcome)

        try:
            tx_hash = await self._ledger.sell_position(
                market_id, position_id, shares, min_price_bp
            )
        except LedgerWriteError as exc:
            logger.exception("Sell of position %d rejected", position_id)
            kind, message = classify_rejection(
                TradeAction.SELL, exc, symbol=self._config.token_symbol
            )
            return log.fail(kind, message)
        except LedgerError:
            logger.exception("Sell of position %d failed", position_id)
            return log.fail(FailureKind.GENERIC, GENERIC_MESSAGES[TradeAction.SELL])

        await settle_all(
            {
                "balance": self.refresh_balance(),
                "market": self.refresh_market(market_id),
                "positions": self.refresh_positions(market_id),
            }
        )
        return log.succeed(f"Sold {_format_amount(to_token_units(shares))} shares", tx_hash)

    # ------------------------------------------------------------------
    # Claim
    # ------------------------------------------------------------------

    async def claim(
        self,
        market_id: int,
        position_id: int,
        *,
        on_status: StatusCallback | None = None,
    ) -> TradeResult:
        """Claim the winnings of a position on a resolved market.

        When both the market and the position are cached the claim is
        checked for eligibility first; a position that lost or was already
        claimed never reaches the ledger.

        Args:
            market_id: Market the position belongs to.
            position_id: Position to claim.
            on_status: Receives every status line as it is emitted.

        Returns:
            The pipeline's single outcome.

        """
        return await self._exclusive(
            TradeAction.CLAIM,
            lambda: self._claim(market_id, position_id, on_status),
            on_status,
        )

    async def _claim(
        self,
        market_id: int,
        position_id: int,
        on_status: StatusCallback | None,
    ) -> TradeResult:
        log = _StatusLog(TradeAction.CLAIM, on_status)
        if self._ledger.account_address is None:
            return log.fail(FailureKind.CONNECT_WALLET, _CONNECT_WALLET_MESSAGE)
        if self.positions.is_claimed(market_id, position_id):
            return log.fail(FailureKind.NOT_ELIGIBLE, "Winnings already claimed.")

        position = self.positions.get(market_id, position_id)
        market = self._markets.get(market_id)
        if (
            position is not None
            and market is not None
            and not self.positions.claim_eligible(position, market)
        ):
            return log.fail(FailureKind.NOT_ELIGIBLE, "This position has nothing to claim.")

        try:
            tx_hash = await self._ledger.claim_winnings(market_id, position_id)
        except LedgerWriteError as exc:
            logger.exception("Claim of position %d rejected", position_id)
            kind, message = classify_rejection(
                TradeAction.CLAIM, exc, symbol=self._config.token_symbol
            )
            return log.fail(kind, message)
        except LedgerError:
            logger.exception("Claim of position %d failed", position_id)
            return log.fail(FailureKind.GENERIC, GENERIC_MESSAGES[TradeAction.CLAIM])

        self.positions.mark_claimed(market_id, position_id)
        await settle_all(
            {
                "balance": self.refresh_balance(),
                "market": self.refresh_market(market_id),
                "positions": self.refresh_positions(market_id),
            }
        )
        return log.succeed("Winnings claimed!", tx_hash)

    # ------------------------------------------------------------------
    # Create market
    # ------------------------------------------------------------------

    async def create_market(
        self,
        proposal: Proposal,
        initial_liquidity: Decimal,
        *,
        on_status: StatusCallback | None = None,
    ) -> TradeResult:
        """Create a market from a validated proposal.

        Args:
            proposal: Draft to publish; its question becomes the title.
            initial_liquidity: Liquidity to seed the market with, in token
                units. The creation fee is charged on top.
            on_status: Receives every status line as it is emitted.

        Returns:
            The pipeline's single outcome.

        """
        return await self._exclusive(
            TradeAction.CREATE_MARKET,
            lambda: self._create_market(proposal, initial_liquidity, on_status),
            on_status,
        )

    async def _create_market(
        self,
        proposal: Proposal,
        initial_liquidity: Decimal,
        on_status: StatusCallback | None,
    ) -> TradeResult:
        log = _StatusLog(TradeAction.CREATE_MARKET, on_status)
        symbol = self._config.token_symbol
        account = self._ledger.account_address
        if account is None:
            return log.fail(FailureKind.CONNECT_WALLET, _CONNECT_WALLET_MESSAGE)

        problem = proposal.validate()
        if problem is not None:
            return log.fail(FailureKind.VALIDATION, problem)
        try:
            end_time = parse_end_date(proposal.end_date)
        except ValueError:
            return log.fail(FailureKind.VALIDATION, "Invalid date format.")
        if end_time <= self._clock():
            return log.fail(FailureKind.VALIDATION, "End time must be in the future!")

        liquidity_wei = to_wei(initial_liquidity)
        if liquidity_wei < self._min_liquidity:
            return log.fail(
                FailureKind.INSUFFICIENT_LIQUIDITY,
                f"Min {_format_amount(self.min_liquidity)} {symbol}",
            )

        log.emit("Preparing market...")
        try:
            return await self._submit_market(log, proposal, end_time, liquidity_wei, account)
        except Exception:
            logger.exception("Create market pipeline failed")
            return log.fail(FailureKind.GENERIC, _CREATE_FALLBACK_MESSAGE)

    async def _submit_market(
        self,
        log: _StatusLog,
        proposal: Proposal,
        end_time: int,
        liquidity_wei: int,
        account: str,
    ) -> TradeResult:
        symbol = self._config.token_symbol
        balance, allowance, fee, min_liquidity = await asyncio.gather(
            self._read_or("balance", self._ledger.balance_of(account), 0),
            self._read_or("allowance", self._ledger.allowance(account), 0),
            self._read_or("creation fee", self._ledger.market_creation_fee(), 0),
            self._read_or(
                "min liquidity", self._ledger.min_initial_liquidity(), self._min_liquidity
            ),
        )
        self.balance = balance
        self._min_liquidity = min_liquidity
        if liquidity_wei < min_liquidity:
            return log.fail(
                FailureKind.INSUFFICIENT_LIQUIDITY,
                f"Min {_format_amount(self.min_liquidity)} {symbol}",
            )

        total_required = liquidity_wei + fee
        if balance < total_required:
            return log.fail(FailureKind.INSUFFICIENT_BALANCE, f"Insufficient {symbol} balance")

        if allowance < total_required:
            try:
                await self._ledger.approve(total_required)
            except LedgerError:
                logger.exception("Approval for market creation failed")
                return log.fail(FailureKind.APPROVAL_FAILED, "Approval failed.")
            log.emit(f"{symbol} approved!")
            allowance = await self._read_or("allowance", self._ledger.allowance(account), 0)
            if allowance < total_required:
                return log.fail(FailureKind.APPROVAL_FAILED, "Approval not successful. Try again.")

        log.emit("Creating market...")
        title = proposal.question
        resolution = proposal.resolution_criteria or _DEFAULT_RESOLUTION
        try:
            tx_hash = await self._ledger.create_market(
                title,
                proposal.description or proposal.resolution_criteria,
                resolution,
                end_time,
                self._oracle,
                liquidity_wei,
            )
        except LedgerWriteError as exc:
            logger.exception("createMarket rejected")
            kind, message = classify_rejection(
                TradeAction.CREATE_MARKET,
                exc,
                symbol=symbol,
                min_liquidity=_format_amount(self.min_liquidity),
            )
            return log.fail(kind, message)

        await settle_all(
            {
                "balance": self.refresh_balance(),
                "markets": self.refresh_markets(),
            }
        )
        return log.succeed(f'Market "{title}" created! Live now.', tx_hash)

    # ------------------------------------------------------------------
    # Refresh & snapshot
    # ------------------------------------------------------------------

    async def refresh_balance(self) -> int:
        """Re-read the connected account's token balance."""
        account = self._ledger.account_address
        if account is None:
            self.balance = 0
            return 0
        self.balance = await self._ledger.balance_of(account)
        return self.balance

    async def refresh_market(self, market_id: int) -> MarketState:
        """Re-read one market and update the cache."""
        market = await self._ledger.get_market_details(market_id)
        self._markets[market_id] = market
        return market

    async def refresh_markets(self) -> list[MarketState]:
        """Re-read every market listed by the contract.

        Markets whose detail read fails keep their previous cached state.

        Returns:
            The markets read successfully, in contract order.

        """
        market_ids = await self._ledger.get_all_market_ids()
        batch = await settle_all(
            {str(mid): self._ledger.get_market_details(mid) for mid in market_ids}
        )
        refreshed: list[MarketState] = []
        for mid in market_ids:
            market = batch.results.get(str(mid))
            if market is not None:
                self._markets[mid] = market
                refreshed.append(market)
        return refreshed

    async def refresh_positions(self, market_id: int | None = None) -> None:
        """Replace cached positions with authoritative reads.

        Args:
            market_id: Market to refresh; every cached market when omitted.

        """
        account = self._ledger.account_address
        if account is None:
            return
        market_ids = [market_id] if market_id is not None else sorted(self._markets)
        for mid in market_ids:
            positions = await self._ledger.get_user_positions(mid, account)
            self.positions.upsert_from_chain(mid, positions)

    def snapshot(self, now: int | None = None) -> PortfolioSnapshot:
        """Build a portfolio view from the current caches.

        Args:
            now: Unix time used for holding periods; the clock when omitted.

        Returns:
            Balance, markets, per-position views and aggregates.

        """
        now = self._clock() if now is None else now
        markets = dict(self._markets)
        views: list[PositionView] = []
        for position in self.positions.positions():
            market = markets.get(position.market_id)
            if market is None:
                views.append(PositionView(position, None, 0, None, None))
                continue
            views.append(
                PositionView(
                    position=position,
                    market=market,
                    current_value=self.positions.current_value(position, market),
                    pnl=self.positions.pnl(position, market),
                    status=self.positions.status(position, market),
                )
            )
        return PortfolioSnapshot(
            balance=self.balance,
            markets=markets,
            positions=tuple(views),
            total_value=self.positions.total_value(markets),
            total_shares=self.positions.total_shares(),
            total_cost=self.positions.total_cost(),
            unrealized_pnl=self.positions.unrealized_pnl(markets),
            win_rate=self.positions.win_rate(markets),
            average_hold_days=self.positions.average_hold_days(now),
        )
