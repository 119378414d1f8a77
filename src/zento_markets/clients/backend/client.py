"""Async HTTP client for the market suggestion and reward backend.

The backend runs the conversational market-authoring assistant
(``/api/market/search-suggestions`` starts a session, ``/api/market/continue``
advances it) and records reward points for trading activity.
"""

import logging
from typing import Any

import httpx

from zento_markets.clients.backend.exceptions import BackendAPIError, BackendConnectionError
from zento_markets.clients.backend.models import SuggestionResponse

logger = logging.getLogger(__name__)

_HTTP_BAD_REQUEST = 400
_DEFAULT_ERROR_MESSAGE = "Something went wrong. Please try again."


class BackendClient:
    """Async HTTP client for the suggestion service.

    Args:
        base_url: Root URL of the backend.
        timeout: Request timeout in seconds.

    """

    BASE_URL = "https://pivot-tst.onrender.com"

    def __init__(self, base_url: str = BASE_URL, timeout: float = 30.0) -> None:
        """Initialize the backend client.

        Args:
            base_url: Root URL of the backend.
            timeout: Request timeout in seconds.

        """
        self.base_url = base_url.rstrip("/")
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def search_suggestions(
        self,
        query: str,
        user_id: str,
        context: str | None = None,
    ) -> SuggestionResponse:
        """Start a suggestion session from a free-text query.

        Args:
            query: User query or headline prompt.
            user_id: Identifier of the requesting user.
            context: Extra context forwarded to the model (e.g. the
                original headline).

        Returns:
            Normalised response; ``session_id`` is set on a new session.

        Raises:
            BackendConnectionError: When the service cannot be reached.
            BackendAPIError: When the service rejects the request.

        """
        body: dict[str, Any] = {"query": query, "user_id": user_id}
        if context is not None:
            body["context"] = context
        data = await self._post("/api/market/search-suggestions", body)
        return SuggestionResponse.from_dict(data)

    async def continue_session(
        self,
        session_id: str,
        response: str,
        context: str | None = None,
    ) -> SuggestionResponse:
        """Send the user's next reply in an existing session.

        Args:
            session_id: Session returned by ``search_suggestions``.
            response: User reply text.
            context: Extra context forwarded to the model.

        Returns:
            Normalised response.

        Raises:
            BackendConnectionError: When the service cannot be reached.
            BackendAPIError: When the service rejects the request.

        """
        body: dict[str, Any] = {"session_id": session_id, "response": response}
        if context is not None:
            body["context"] = context
        data = await self._post("/api/market/continue", body)
        return SuggestionResponse.from_dict(data)

    async def award_points(
        self,
        wallet_address: str,
        points: float,
        action_type: str,
        description: str,
    ) -> dict[str, Any]:
        """Record reward points for a completed action.

        Args:
            wallet_address: Wallet that performed the action.
            points: Points to award (the stake size for buys).
            action_type: Action key, e.g. ``"buy_7"``.
            description: Human-readable description.

        Returns:
            The service's JSON reply.

        Raises:
            BackendConnectionError: When the service cannot be reached.
            BackendAPIError: When the service rejects the request.

        """
        return await self._post(
            "/api/points/award",
            {
                "wallet_address": wallet_address,
                "points": points,
                "action_type": action_type,
                "description": description,
            },
        )

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        """Send a JSON POST request and return the parsed body.

        A response counts as successful only when the status is below 400
        and the body does not carry ``"success": false``.

        Args:
            path: Request path relative to base_url.
            body: JSON request body.

        Returns:
            Parsed JSON object.

        Raises:
            BackendConnectionError: On transport failure or a non-JSON body.
            BackendAPIError: On an error status or ``success: false``.

        """
        url = f"{self.base_url}{path}"
        try:
            response = await self._http_client.request("POST", url, json=body)
        except httpx.HTTPError as exc:
            raise BackendConnectionError(f"HTTP request failed: {exc}") from exc

        try:
            data: Any = response.json()
        except ValueError as exc:
            raise BackendConnectionError(
                f"Invalid JSON from {path} (HTTP {response.status_code})"
            ) from exc
        if not isinstance(data, dict):
            data = {}

        if response.status_code >= _HTTP_BAD_REQUEST or data.get("success") is False:
            self._handle_error(response.status_code, data)
        return data

    @staticmethod
    def _handle_error(status_code: int, data: dict[str, Any]) -> None:
        """Raise a BackendAPIError from an error response.

        Args:
            status_code: HTTP status code of the response.
            data: Parsed response body.

        Raises:
            BackendAPIError: Always raised with status code and message.

        """
        msg = str(data.get("message") or _DEFAULT_ERROR_MESSAGE)
        logger.debug("Backend error %d: %s", status_code, msg)
        raise BackendAPIError(msg=msg, status_code=status_code)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http_client.aclose()

    async def __aenter__(self) -> "BackendClient":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        await self.close()
