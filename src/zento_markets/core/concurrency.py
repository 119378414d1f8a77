"""Join combinators for best-effort batches of async calls."""

import asyncio
import logging
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettledBatch:
    """Outcome of a ``settle_all`` join.

    Args:
        results: Successful results keyed by task label.
        failures: Exceptions keyed by the label of the task that raised.

    """

    results: dict[str, Any] = field(default_factory=dict)
    failures: dict[str, BaseException] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Return ``True`` when every task in the batch succeeded."""
        return not self.failures


async def settle_all(tasks: Mapping[str, Awaitable[Any]]) -> SettledBatch:
    """Run labelled awaitables concurrently and wait for all of them to settle.

    Individual failures never cancel siblings and are never re-raised: each
    one is logged and recorded in the returned batch. The coroutine only
    completes once every task has finished, successfully or not, giving the
    caller a single aggregate completion signal.

    Args:
        tasks: Awaitables keyed by a short label used in logs.

    Returns:
        A ``SettledBatch`` splitting results from failures.

    """
    labels = list(tasks)
    outcomes = await asyncio.gather(*(tasks[label] for label in labels), return_exceptions=True)
    batch = SettledBatch()
    for label, outcome in zip(labels, outcomes, strict=True):
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
        if isinstance(outcome, BaseException):
            logger.warning("Refresh task %s failed: %s", label, outcome, exc_info=outcome)
            batch.failures[label] = outcome
        else:
            batch.results[label] = outcome
    return batch
