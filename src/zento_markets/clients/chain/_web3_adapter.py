"""Isolated bridge to ``web3`` for the market and token contracts.

This is the only module that talks to a JSON-RPC node. Every function is
synchronous and returns primitive types (``int``, ``dict``, ``str``); the
async ``LedgerClient`` facade runs them in a worker thread and converts
the results into typed dataclasses.
"""

import logging
from typing import Any

from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted
from web3.types import Nonce, TxParams, Wei

from zento_markets.clients.chain._contracts import (
    KNOWN_ERRORS,
    MARKET_ABI,
    MARKET_DETAIL_FIELDS,
    POSITION_FIELDS,
    TOKEN_ABI,
)
from zento_markets.clients.chain.exceptions import LedgerReadError, LedgerWriteError

_logger = logging.getLogger(__name__)

_GAS_PRICE_MULTIPLIER = 1.25  # 25% above estimated to ensure inclusion
_SELECTOR_HEX_LEN = 8


def create_web3(rpc_url: str) -> Web3:
    """Create a ``Web3`` instance bound to an HTTP JSON-RPC endpoint.

    The provider connects lazily, so construction never touches the network.
    """
    return Web3(Web3.HTTPProvider(rpc_url))


def bind_contracts(w3: Web3, market_address: str, token_address: str) -> tuple[Any, Any]:
    """Return contract handles for the market and token contracts.

    Args:
        w3: Connected ``Web3`` instance.
        market_address: Prediction market contract address.
        token_address: Stake token contract address.

    Returns:
        ``(market, token)`` contract objects.

    """
    market = w3.eth.contract(address=Web3.to_checksum_address(market_address), abi=MARKET_ABI)
    token = w3.eth.contract(address=Web3.to_checksum_address(token_address), abi=TOKEN_ABI)
    return market, token


def call_view(action: str, contract: Any, fn_name: str, *args: Any) -> Any:
    """Execute a contract view call with standardised error handling.

    Args:
        action: Human-readable description for error messages.
        contract: Contract handle from ``bind_contracts``.
        fn_name: ABI function name.
        *args: Arguments forwarded to the contract function.

    Returns:
        The decoded return value.

    Raises:
        LedgerReadError: When the call reverts or the node is unreachable.

    """
    try:
        return getattr(contract.functions, fn_name)(*args).call()
    except Exception as exc:
        raise LedgerReadError(f"Failed to {action}: {exc}") from exc


def read_market_details(market: Any, market_id: int) -> dict[str, Any]:
    """Read ``getMarketDetails`` and key the struct fields by name."""
    raw = call_view(f"read market {market_id}", market, "getMarketDetails", market_id)
    return dict(zip(MARKET_DETAIL_FIELDS, raw, strict=True))


def read_user_positions(market: Any, market_id: int, user: str) -> list[dict[str, Any]]:
    """Read ``getUserPositions`` and key each struct's fields by name."""
    raw = call_view(
        f"read positions in market {market_id}",
        market,
        "getUserPositions",
        market_id,
        Web3.to_checksum_address(user),
    )
    return [dict(zip(POSITION_FIELDS, item, strict=True)) for item in raw]


def decode_revert(exc: BaseException) -> tuple[str, str | None]:
    """Extract the revert reason and custom error name from a web3 error.

    Args:
        exc: Exception raised while estimating or sending a transaction.

    Returns:
        ``(reason, code)`` where ``code`` is the custom error name when the
        revert data carries a known selector, else ``None``.

    """
    code: str | None = None
    data = getattr(exc, "data", None)
    if isinstance(data, str):
        selector = data.removeprefix("0x")[:_SELECTOR_HEX_LEN].lower()
        code = KNOWN_ERRORS.get(selector)
    if isinstance(exc, ContractLogicError) and exc.message:
        reason = exc.message
    else:
        reason = str(exc) or type(exc).__name__
    reason = reason.removeprefix("execution reverted: ").removeprefix("execution reverted")
    return reason or "execution reverted", code


def send_transaction(
    w3: Web3,
    private_key: str,
    contract: Any,
    fn_name: str,
    args: tuple[Any, ...],
    *,
    gas: int,
    receipt_timeout: int,
    chain_id: int | None = None,
) -> str:
    """Sign, submit, and wait for one contract write.

    Use the network's recommended gas price with a 25% buffer instead of a
    static value to avoid stale-gas failures.

    Args:
        w3: Connected ``Web3`` instance.
        private_key: Hex-encoded signing key.
        contract: Contract handle from ``bind_contracts``.
        fn_name: ABI function name.
        args: Arguments forwarded to the contract function.
        gas: Gas limit for the transaction.
        receipt_timeout: Seconds to wait for the receipt.
        chain_id: Chain ID to embed in the transaction, if known.

    Returns:
        Transaction hash as a ``0x``-prefixed hex string.

    Raises:
        LedgerWriteError: When the call is rejected before submission, the
            receipt does not arrive in time, or the transaction reverts.

    """
    account = w3.eth.account.from_key(private_key)
    try:
        nonce = w3.eth.get_transaction_count(account.address, "pending")
        tx_params: TxParams = {
            "from": account.address,
            "gas": gas,
            "gasPrice": Wei(int(w3.eth.gas_price * _GAS_PRICE_MULTIPLIER)),
            "nonce": Nonce(nonce),
        }
        if chain_id is not None:
            tx_params["chainId"] = chain_id
        tx = getattr(contract.functions, fn_name)(*args).build_transaction(tx_params)
        signed = w3.eth.account.sign_transaction(tx, private_key=private_key)
        tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
    except Exception as exc:
        reason, code = decode_revert(exc)
        raise LedgerWriteError(reason, code=code) from exc

    hash_hex = Web3.to_hex(tx_hash)
    try:
        receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=receipt_timeout)
    except TimeExhausted as exc:
        raise LedgerWriteError(
            f"No receipt after {receipt_timeout}s", tx_hash=hash_hex
        ) from exc
    except Exception as exc:
        raise LedgerWriteError(str(exc) or type(exc).__name__, tx_hash=hash_hex) from exc

    _logger.info(
        "%s: %s (gas used: %d, tx: %s)",
        fn_name,
        "SUCCESS" if receipt["status"] == 1 else "FAILED",
        receipt["gasUsed"],
        hash_hex,
    )
    if receipt["status"] != 1:
        raise LedgerWriteError("Transaction reverted", tx_hash=hash_hex)
    return hash_hex
