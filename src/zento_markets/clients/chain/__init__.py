"""Typed async client for the prediction market and stake token contracts."""

from zento_markets.clients.chain.client import LedgerClient
from zento_markets.clients.chain.exceptions import LedgerError, LedgerReadError, LedgerWriteError

__all__ = [
    "LedgerClient",
    "LedgerError",
    "LedgerReadError",
    "LedgerWriteError",
]
