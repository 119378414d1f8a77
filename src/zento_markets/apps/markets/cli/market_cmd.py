"""CLI commands for browsing markets and quoting trades.

``markets`` lists every market on the contract with its prices and time
left; ``quote`` previews the payout and slippage guard for a buy without
sending anything.
"""

import asyncio
import time
from typing import Annotated

import typer

from zento_markets.apps.markets.cli._helpers import (
    build_ledger_client,
    build_orchestrator,
    configure_verbose_logging,
    format_tokens,
    parse_amount,
    parse_side,
)
from zento_markets.clients.chain.exceptions import LedgerError
from zento_markets.core.models import BPS_SCALE, Outcome, to_wei
from zento_markets.pricing import calculator

_PERCENTAGE_MULTIPLIER = 100


def markets(
    verbose: Annotated[  # noqa: FBT002
        bool, typer.Option("--verbose", "-v", help="Enable client logging")
    ] = False,
) -> None:
    """List every market with its YES/NO prices and time left."""
    if verbose:
        configure_verbose_logging()
    asyncio.run(_markets())


async def _markets() -> None:
    """Fetch and display all markets."""
    orchestrator = build_orchestrator()
    try:
        listed = await orchestrator.refresh_markets()
    except LedgerError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    if not listed:
        typer.echo("\nNo markets found.")
        return

    now = int(time.time())
    typer.echo(f"\n{'ID':>5} {'YES':>7} {'NO':>7} {'Left':>10}  Title")
    typer.echo("-" * 80)
    for market in listed:
        left = "Resolved" if market.resolved else market.time_left(now)
        typer.echo(
            f"{market.id:>5} "
            f"{market.yes_price_bp / BPS_SCALE:>7.2%} "
            f"{market.no_price_bp / BPS_SCALE:>7.2%} "
            f"{left:>10}  {market.title[:50]}"
        )


def quote(
    market_id: Annotated[int, typer.Argument(help="Market ID")],
    side: Annotated[str, typer.Option(help="Outcome to buy: yes or no")] = "yes",
    amount: Annotated[str, typer.Option(help="Stake in token units")] = "10",
) -> None:
    """Preview the payout, price impact and slippage guard for a buy."""
    outcome = parse_side(side)
    stake = parse_amount(amount)
    asyncio.run(_quote(market_id=market_id, side=outcome, amount_wei=to_wei(stake)))


async def _quote(*, market_id: int, side: Outcome, amount_wei: int) -> None:
    """Read one market and print the calculator's estimates."""
    client = build_ledger_client()
    try:
        market = await client.get_market_details(market_id)
    except LedgerError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    shares = calculator.payout(side, amount_wei, market)
    impact = calculator.price_impact_bps(side, amount_wei, market)
    bound = calculator.slippage_bound(side, amount_wei, market)
    probability = calculator.price(side, market) * _PERCENTAGE_MULTIPLIER

    typer.echo(f"\n{market.title}")
    typer.echo(f"{'=' * len(market.title)}")
    typer.echo(f"Side:            {side.name}")
    typer.echo(f"Probability:     {probability:.2f}%")
    typer.echo(f"Stake:           {format_tokens(amount_wei)}")
    typer.echo(f"Shares (est.):   {format_tokens(shares)}")
    typer.echo(f"Fee:             {calculator.FEE_RATE:.0%}")
    typer.echo(f"Price impact:    {impact} bps")
    typer.echo(f"Slippage bound:  {bound} bps")
