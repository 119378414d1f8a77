"""Shared helpers for market CLI commands.

Centralise configuration loading, client construction, argument parsing
and result rendering that every command module needs.
"""

import logging
from decimal import Decimal, InvalidOperation

import typer

from zento_markets.apps.trading.models import TradeResult
from zento_markets.apps.trading.orchestrator import TradeOrchestrator
from zento_markets.clients.backend.client import BackendClient
from zento_markets.clients.chain.client import LedgerClient
from zento_markets.core.config import ConfigError, get_config
from zento_markets.core.models import Outcome, to_token_units


def configure_verbose_logging() -> None:
    """Enable INFO-level logging for pipeline and client output."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(message)s",
        datefmt="%H:%M:%S",
    )


def build_ledger_client(*, require_wallet: bool = False) -> LedgerClient:
    """Build a ledger client from the loaded configuration.

    Args:
        require_wallet: Abort when no private key is configured.

    Returns:
        Ledger client, read-only when no key is configured.

    """
    try:
        ledger_config = get_config().get_ledger_config()
    except ConfigError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    if require_wallet and not ledger_config.private_key:
        typer.echo("Error: ZENTO_PRIVATE_KEY environment variable is required.", err=True)
        raise typer.Exit(code=1)
    return LedgerClient(ledger_config)


def build_backend_client() -> BackendClient:
    """Build a suggestion and reward backend client from the loaded configuration."""
    try:
        backend_config = get_config().get_backend_config()
    except ConfigError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    return BackendClient(base_url=backend_config.base_url, timeout=backend_config.timeout)


def build_orchestrator(
    *,
    require_wallet: bool = False,
    backend: BackendClient | None = None,
) -> TradeOrchestrator:
    """Wire a trade orchestrator from the loaded configuration.

    Args:
        require_wallet: Abort when no private key is configured.
        backend: Reward backend to award points through, if any.

    Returns:
        Orchestrator with empty caches.

    """
    ledger = build_ledger_client(require_wallet=require_wallet)
    config = get_config()
    return TradeOrchestrator(
        ledger,
        config.get_trading_config(),
        oracle=config.get_ledger_config().oracle,
        backend=backend,
    )


def parse_side(value: str) -> Outcome:
    """Parse a ``yes``/``no`` option, aborting on anything else."""
    try:
        return Outcome.parse(value)
    except ValueError:
        typer.echo(f"Error: Side must be 'yes' or 'no', got '{value}'.", err=True)
        raise typer.Exit(code=1) from None


def parse_amount(value: str) -> Decimal:
    """Parse a positive token amount, aborting on invalid input."""
    try:
        amount = Decimal(value)
    except InvalidOperation:
        typer.echo(f"Error: Invalid amount '{value}'.", err=True)
        raise typer.Exit(code=1) from None
    if amount <= 0:
        typer.echo("Error: Amount must be positive.", err=True)
        raise typer.Exit(code=1)
    return amount


def format_tokens(wei: int) -> str:
    """Format a wei amount as token units with two decimals."""
    return f"{to_token_units(wei):,.2f}"


def echo_result(result: TradeResult) -> None:
    """Print a pipeline's status lines and exit non-zero on failure."""
    for line in result.statuses or (result.message,):
        typer.echo(line)
    if result.tx_hash:
        typer.echo(f"Transaction: {result.tx_hash}")
    if not result.success:
        raise typer.Exit(code=1)
