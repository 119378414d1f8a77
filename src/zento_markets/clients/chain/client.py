"""Async facade over the market and token contracts.

Wrap the synchronous ``web3`` calls in ``_web3_adapter`` with
``asyncio.to_thread()`` so the event loop is never blocked, and convert
raw struct dictionaries into typed ``MarketState`` and ``Position``
dataclasses.

Idempotent reads are retried a bounded number of times. Writes are
submitted exactly once and serialised behind a lock so consecutive
transactions from the same account get sequential nonces.
"""

import asyncio
import logging
from typing import Any

from zento_markets.clients.chain import _web3_adapter
from zento_markets.clients.chain.exceptions import LedgerError, LedgerReadError
from zento_markets.core.config import LedgerConfig
from zento_markets.core.models import MarketState, Outcome, Position

logger = logging.getLogger(__name__)


class LedgerClient:
    """Typed async client for the prediction market contract.

    Without a private key the client is read-only: ``account_address`` is
    ``None`` and every write raises ``LedgerError``.

    Args:
        config: Contract addresses, RPC endpoint, and retry settings.

    """

    def __init__(self, config: LedgerConfig, w3: Any = None) -> None:
        """Initialize the ledger client.

        Args:
            config: Contract addresses, RPC endpoint, and retry settings.
            w3: Pre-built ``Web3`` instance; one is created from
                ``config.rpc_url`` when omitted.

        """
        self._config = config
        self._w3: Any = w3 if w3 is not None else _web3_adapter.create_web3(config.rpc_url)
        self._market, self._token = _web3_adapter.bind_contracts(
            self._w3, config.market_contract, config.token_contract
        )
        self._account_address: str | None = None
        if config.private_key:
            self._account_address = str(self._w3.eth.account.from_key(config.private_key).address)
        self._write_lock = asyncio.Lock()

    @property
    def account_address(self) -> str | None:
        """Return the signing account's address, or ``None`` when read-only."""
        return self._account_address

    @property
    def market_address(self) -> str:
        """Return the market contract address (the token spender)."""
        return str(self._market.address)

    async def _read(self, fn: Any, *args: Any) -> Any:
        """Run a blocking adapter read, retrying transient failures.

        Args:
            fn: Adapter function to call in a worker thread.
            *args: Arguments forwarded to *fn*.

        Returns:
            The adapter function's result.

        Raises:
            LedgerReadError: When every attempt fails.

        """
        attempts = max(1, self._config.read_attempts)
        for attempt in range(1, attempts):
            try:
                return await asyncio.to_thread(fn, *args)
            except LedgerReadError as exc:
                logger.debug("Read attempt %d/%d failed: %s", attempt, attempts, exc)
                await asyncio.sleep(self._config.read_retry_delay)
        return await asyncio.to_thread(fn, *args)

    async def _view(self, action: str, contract: Any, fn_name: str, *args: Any) -> Any:
        return await self._read(_web3_adapter.call_view, action, contract, fn_name, *args)

    async def _write(self, contract: Any, fn_name: str, *args: Any) -> str:
        """Submit one signed transaction and wait for its receipt.

        Args:
            contract: Contract handle to call.
            fn_name: ABI function name.
            *args: Arguments forwarded to the contract function.

        Returns:
            Transaction hash.

        Raises:
            LedgerError: When no signing key is configured.
            LedgerWriteError: When the transaction is rejected or reverts.

        """
        if not self._config.private_key:
            raise LedgerError("No wallet connected")
        async with self._write_lock:
            return await asyncio.to_thread(
                _web3_adapter.send_transaction,
                self._w3,
                self._config.private_key,
                contract,
                fn_name,
                args,
                gas=self._config.gas,
                receipt_timeout=self._config.receipt_timeout,
                chain_id=self._config.chain_id,
            )

    async def balance_of(self, owner: str) -> int:
        """Return the token balance of an address, in wei."""
        return int(await self._view(f"read balance of {owner}", self._token, "balanceOf", owner))

    async def allowance(self, owner: str) -> int:
        """Return how much the market contract may spend on ``owner``'s behalf."""
        return int(
            await self._view(
                f"read allowance of {owner}",
                self._token,
                "allowance",
                owner,
                self.market_address,
            )
        )

    async def calculate_outcome_price(self, market_id: int, side: Outcome) -> int:
        """Return the contract's current price for one side of a market."""
        return int(
            await self._view(
                f"price {side.name} in market {market_id}",
                self._market,
                "calculateOutcomePrice",
                market_id,
                side.value,
            )
        )

    async def market_creation_fee(self) -> int:
        """Return the fee charged by ``createMarket``, in wei."""
        return int(await self._view("read creation fee", self._market, "marketCreationFee"))

    async def min_initial_liquidity(self) -> int:
        """Return the minimum initial liquidity accepted by ``createMarket``."""
        return int(await self._view("read min liquidity", self._market, "minInitialLiquidity"))

    async def get_all_market_ids(self) -> list[int]:
        """Return every market ID known to the contract."""
        raw = await self._view("list markets", self._market, "getAllMarketIds")
        return [int(mid) for mid in raw]

    async def get_market_details(self, market_id: int) -> MarketState:
        """Read and decode one market.

        Args:
            market_id: Market to read.

        Returns:
            A fresh ``MarketState`` snapshot.

        Raises:
            LedgerReadError: When the read fails or the struct is malformed.

        """
        raw = await self._read(_web3_adapter.read_market_details, self._market, market_id)
        try:
            return _parse_market(raw)
        except (KeyError, ValueError) as exc:
            raise LedgerReadError(f"Malformed market {market_id}: {exc}") from exc

    async def get_user_positions(self, market_id: int, owner: str) -> list[Position]:
        """Read and decode every position ``owner`` holds in a market."""
        raw = await self._read(_web3_adapter.read_user_positions, self._market, market_id, owner)
        return [_parse_position(market_id, item) for item in raw]

    async def approve(self, amount: int) -> str:
        """Allow the market contract to spend ``amount`` of the user's tokens."""
        return await self._write(self._token, "approve", self.market_address, amount)

    async def buy_position(self, market_id: int, side: Outcome, amount: int, max_price: int) -> str:
        """Buy shares of one side, reverting if the price exceeds ``max_price``."""
        return await self._write(
            self._market, "buyPosition", market_id, side.value, amount, max_price
        )

    async def sell_position(
        self, market_id: int, position_id: int, shares: int, min_price: int
    ) -> str:
        """Sell shares of a position, reverting below ``min_price``."""
        return await self._write(
            self._market, "sellPosition", market_id, position_id, shares, min_price
        )

    async def claim_winnings(self, market_id: int, position_id: int) -> str:
        """Claim the payout of a winning position."""
        return await self._write(self._market, "claimWinnings", market_id, position_id)

    async def create_market(
        self,
        title: str,
        description: str,
        resolution_criteria: str,
        end_time: int,
        oracle: str,
        initial_liquidity: int,
    ) -> str:
        """Create a market funded with ``initial_liquidity``."""
        return await self._write(
            self._market,
            "createMarket",
            title,
            description,
            resolution_criteria,
            end_time,
            oracle,
            initial_liquidity,
        )


def _parse_outcome(code: int) -> Outcome | None:
    return Outcome(code) if code in (Outcome.YES.value, Outcome.NO.value) else None


def _parse_market(raw: dict[str, Any]) -> MarketState:
    """Convert a ``getMarketDetails`` struct into a ``MarketState``."""
    resolved = bool(raw["resolved"])
    return MarketState(
        id=int(raw["id"]),
        title=str(raw["title"]),
        description=str(raw.get("description", "")),
        resolution_criteria=str(raw["resolutionCriteria"]),
        creator=str(raw.get("creator", "")),
        creation_time=int(raw["creationTime"]),
        end_time=int(raw["endTime"]),
        oracle=str(raw.get("oracle", "")),
        resolved=resolved,
        outcome=_parse_outcome(int(raw["outcome"])) if resolved else None,
        yes_price_bp=int(raw["yesPrice"]),
        no_price_bp=int(raw["noPrice"]),
        total_yes_shares=int(raw["totalYesShares"]),
        total_no_shares=int(raw["totalNoShares"]),
        total_liquidity=int(raw.get("totalLiquidity", 0)),
        total_value_locked=int(raw.get("totalValueLocked", 0)),
        participant_count=int(raw["participantCount"]),
    )


def _parse_position(market_id: int, raw: dict[str, Any]) -> Position:
    """Convert a ``getUserPositions`` struct into a ``Position``."""
    return Position(
        id=int(raw["id"]),
        owner=str(raw["user"]),
        market_id=market_id,
        outcome=Outcome(int(raw["outcome"])),
        shares=int(raw["shares"]),
        avg_price_bp=int(raw["avgPrice"]),
        acquired_at=int(raw["timestamp"]),
    )
