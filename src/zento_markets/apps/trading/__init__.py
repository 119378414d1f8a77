"""Trade execution pipelines for buying, selling, claiming and creating markets."""

from zento_markets.apps.trading.models import (
    FailureKind,
    PortfolioSnapshot,
    PositionView,
    TradeAction,
    TradeResult,
)
from zento_markets.apps.trading.orchestrator import TradeOrchestrator

__all__ = [
    "FailureKind",
    "PortfolioSnapshot",
    "PositionView",
    "TradeAction",
    "TradeOrchestrator",
    "TradeResult",
]
