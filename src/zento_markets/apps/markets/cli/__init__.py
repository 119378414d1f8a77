"""CLI subpackage for the prediction market app.

Create the Typer application and register all command modules.
"""

import typer

from zento_markets.apps.markets.cli.market_cmd import markets, quote
from zento_markets.apps.markets.cli.propose_cmd import propose
from zento_markets.apps.markets.cli.trade_cmd import buy, claim, positions, sell

app = typer.Typer(help="Zento prediction market tools")

app.command()(markets)
app.command()(quote)
app.command()(positions)
app.command()(buy)
app.command()(sell)
app.command()(claim)
app.command()(propose)

__all__ = ["app"]
