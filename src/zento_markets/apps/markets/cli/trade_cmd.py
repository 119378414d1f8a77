"""CLI commands for live trading on the prediction market contract.

Provide ``buy``, ``sell``, ``claim`` and ``positions`` subcommands that
sign transactions with the configured wallet key. ``buy`` previews the
trade and asks for confirmation by default.
"""

import asyncio
from decimal import Decimal
from typing import Annotated

import typer

from zento_markets.apps.markets.cli._helpers import (
    build_backend_client,
    build_orchestrator,
    configure_verbose_logging,
    echo_result,
    format_tokens,
    parse_amount,
    parse_side,
)
from zento_markets.clients.chain.exceptions import LedgerError
from zento_markets.core.models import Outcome, to_wei
from zento_markets.pricing import calculator


def buy(
    market_id: Annotated[int, typer.Argument(help="Market ID")],
    side: Annotated[str, typer.Option(help="Outcome to buy: yes or no")],
    amount: Annotated[str, typer.Option(help="Stake in token units")],
    slippage_bps: Annotated[
        int | None, typer.Option(help="Slippage tolerance in bps (computed when omitted)")
    ] = None,
    no_confirm: Annotated[  # noqa: FBT002
        bool, typer.Option("--no-confirm", help="Skip confirmation prompt")
    ] = False,
    verbose: Annotated[  # noqa: FBT002
        bool, typer.Option("--verbose", "-v", help="Enable pipeline logging")
    ] = False,
) -> None:
    """Buy shares of one side of a market."""
    outcome = parse_side(side)
    stake = parse_amount(amount)
    if slippage_bps is not None and slippage_bps < 0:
        typer.echo("Error: Slippage must not be negative.", err=True)
        raise typer.Exit(code=1)
    if verbose:
        configure_verbose_logging()
    asyncio.run(
        _buy(
            market_id=market_id,
            side=outcome,
            amount=stake,
            slippage_bps=slippage_bps,
            confirm=not no_confirm,
        )
    )


async def _buy(
    *,
    market_id: int,
    side: Outcome,
    amount: Decimal,
    slippage_bps: int | None,
    confirm: bool,
) -> None:
    """Preview, optionally confirm, and run the buy pipeline."""
    async with build_backend_client() as backend:
        orchestrator = build_orchestrator(require_wallet=True, backend=backend)
        if confirm:
            try:
                market = await orchestrator.refresh_market(market_id)
            except LedgerError as exc:
                typer.echo(f"Error: {exc}", err=True)
                raise typer.Exit(code=1) from exc
            amount_wei = to_wei(amount)
            typer.echo(f"\nMarket: {market.title}")
            typer.echo(f"Side: {side.name} at {calculator.price(side, market):.4f}")
            typer.echo(f"Stake: {amount:.2f}")
            typer.echo(
                f"Estimated shares: {format_tokens(calculator.payout(side, amount_wei, market))}"
            )
            if not typer.confirm("\nPlace this buy?"):
                typer.echo("Buy cancelled.")
                raise typer.Exit(code=0)

        result = await orchestrator.buy(
            market_id, side, amount, slippage_bps=slippage_bps, on_status=typer.echo
        )
    if result.tx_hash:
        typer.echo(f"Transaction: {result.tx_hash}")
    if not result.success:
        raise typer.Exit(code=1)


def sell(
    market_id: Annotated[int, typer.Argument(help="Market ID")],
    position_id: Annotated[int, typer.Argument(help="Position ID")],
    shares: Annotated[
        str | None, typer.Option(help="Shares to sell in token units (all when omitted)")
    ] = None,
    min_price_bp: Annotated[
        int | None, typer.Option(help="Minimum price in bps (current price when omitted)")
    ] = None,
) -> None:
    """Sell shares of a position back to the market."""
    shares_wei = to_wei(parse_amount(shares)) if shares is not None else None
    asyncio.run(
        _sell(
            market_id=market_id,
            position_id=position_id,
            shares=shares_wei,
            min_price_bp=min_price_bp,
        )
    )


async def _sell(
    *,
    market_id: int,
    position_id: int,
    shares: int | None,
    min_price_bp: int | None,
) -> None:
    """Run the sell pipeline."""
    orchestrator = build_orchestrator(require_wallet=True)
    result = await orchestrator.sell(
        market_id, position_id, shares, min_price_bp=min_price_bp
    )
    echo_result(result)


def claim(
    market_id: Annotated[int, typer.Argument(help="Market ID")],
    position_id: Annotated[int, typer.Argument(help="Position ID")],
) -> None:
    """Claim the winnings of a position on a resolved market."""
    asyncio.run(_claim(market_id=market_id, position_id=position_id))


async def _claim(*, market_id: int, position_id: int) -> None:
    """Load the position's market, then run the claim pipeline."""
    orchestrator = build_orchestrator(require_wallet=True)
    try:
        await orchestrator.refresh_market(market_id)
        await orchestrator.refresh_positions(market_id)
    except LedgerError as exc:
        typer.echo(f"Warning: could not pre-check eligibility: {exc}", err=True)
    result = await orchestrator.claim(market_id, position_id)
    echo_result(result)


def positions() -> None:
    """Display the connected wallet's positions, values and P&L."""
    asyncio.run(_positions())


async def _positions() -> None:
    """Refresh caches and print a portfolio snapshot."""
    orchestrator = build_orchestrator(require_wallet=True)
    try:
        await orchestrator.refresh_markets()
        await orchestrator.refresh_positions()
        await orchestrator.refresh_balance()
    except LedgerError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    snapshot = orchestrator.snapshot()
    typer.echo(f"\nBalance: {format_tokens(snapshot.balance)}")
    if not snapshot.positions:
        typer.echo("\nNo positions.")
        return

    typer.echo(
        f"\n{'Market':>6} {'Pos':>5} {'Side':<4} {'Shares':>12} {'Value':>12} "
        f"{'P&L':>12} {'P&L %':>8} {'Status':<10}"
    )
    typer.echo("-" * 80)
    for view in snapshot.positions:
        pos = view.position
        pnl_abs = format_tokens(view.pnl.absolute) if view.pnl else "-"
        pnl_pct = f"{view.pnl.percent:.1f}%" if view.pnl else "-"
        status = view.status.value if view.status else "Unknown"
        typer.echo(
            f"{pos.market_id:>6} {pos.id:>5} {pos.outcome.name:<4} "
            f"{format_tokens(pos.shares):>12} {format_tokens(view.current_value):>12} "
            f"{pnl_abs:>12} {pnl_pct:>8} {status:<10}"
        )

    typer.echo("")
    typer.echo(f"Total value:     {format_tokens(snapshot.total_value)}")
    typer.echo(f"Total cost:      {format_tokens(snapshot.total_cost)}")
    typer.echo(f"Unrealized P&L:  {format_tokens(snapshot.unrealized_pnl)}")
    typer.echo(f"Win rate:        {snapshot.win_rate:.1f}%")
    typer.echo(f"Avg hold (days): {snapshot.average_hold_days:.1f}")
