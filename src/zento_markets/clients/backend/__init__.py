"""Async client for the market suggestion and reward backend."""

from zento_markets.clients.backend.client import BackendClient
from zento_markets.clients.backend.exceptions import (
    BackendAPIError,
    BackendConnectionError,
    BackendError,
)
from zento_markets.clients.backend.models import Suggestion, SuggestionResponse

__all__ = [
    "BackendAPIError",
    "BackendClient",
    "BackendConnectionError",
    "BackendError",
    "Suggestion",
    "SuggestionResponse",
]
