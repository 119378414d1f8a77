"""Exception hierarchy for ledger (contract) call errors.

Follow the same pattern as the backend client: a base exception class
with specialised read and write errors so the orchestrator can tell a
failed read (treated as an unknown value) from a rejected transaction.
"""

from zento_markets.core.exceptions import ZentoError


class LedgerError(ZentoError):
    """Base exception for all contract call errors."""


class LedgerReadError(LedgerError):
    """A view call failed after exhausting its attempts.

    Args:
        msg: Human-readable description of the failed read.

    """

    def __init__(self, msg: str) -> None:
        """Initialize the read error.

        Args:
            msg: Human-readable description of the failed read.

        """
        super().__init__(msg)
        self.msg = msg


class LedgerWriteError(LedgerError):
    """A transaction was rejected, reverted, or could not be submitted.

    Carry the revert reason text and, when the contract reverted with a
    recognised custom error, its name as a structured ``code``.

    Args:
        reason: Revert reason or failure description.
        code: Custom error name decoded from revert data, if any.
        tx_hash: Hash of the mined transaction for on-chain reverts.

    """

    def __init__(self, reason: str, code: str | None = None, tx_hash: str | None = None) -> None:
        """Initialize the write error.

        Args:
            reason: Revert reason or failure description.
            code: Custom error name decoded from revert data, if any.
            tx_hash: Hash of the mined transaction for on-chain reverts.

        """
        super().__init__(f"[{code}] {reason}" if code else reason)
        self.reason = reason
        self.code = code
        self.tx_hash = tx_hash
