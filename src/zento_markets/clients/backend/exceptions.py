"""Exception hierarchy for suggestion and reward backend errors.

Follow the same pattern as the ledger client: a base exception class with
a specialised API error that carries status code and message attributes.
"""

from zento_markets.core.exceptions import ZentoError


class BackendError(ZentoError):
    """Base exception for all backend client errors."""


class BackendAPIError(BackendError):
    """Error returned by a backend API call.

    Carry a human-readable message and an HTTP status code so callers
    can distinguish transport failures from rejected requests.

    Args:
        msg: Human-readable description of the error.
        status_code: HTTP status code from the API response.

    """

    def __init__(self, msg: str, status_code: int) -> None:
        """Initialize backend API error.

        Args:
            msg: Human-readable description of the error.
            status_code: HTTP status code from the API response.

        """
        super().__init__(f"[{status_code}] {msg}")
        self.msg = msg
        self.status_code = status_code


class BackendConnectionError(BackendAPIError):
    """The request never produced a readable response.

    Raised for transport failures and for bodies that are not valid JSON.
    """

    def __init__(self, msg: str) -> None:
        """Initialize backend connection error.

        Args:
            msg: Human-readable description of the failure.

        """
        super().__init__(msg, status_code=0)
