"""Interactive CLI chat for authoring a new market.

Walk the user through the proposal flow in the terminal: free-text
search, suggestion selection (or a custom draft), field edits, and
submission through the create-market pipeline.
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Annotated

import typer

from zento_markets.apps.markets.cli._helpers import (
    build_backend_client,
    build_orchestrator,
    configure_verbose_logging,
    parse_amount,
)
from zento_markets.apps.proposal.machine import ProposalMachine
from zento_markets.apps.proposal.models import (
    EDITABLE_FIELDS,
    Conversation,
    Proposal,
    ProposalState,
    Role,
)
from zento_markets.core.config import get_config

_QUIT = {"q", "quit", "exit"}
_EDIT_HELP = (
    "Commands: edit <field> <value> | day <YYYY-MM-DD> | liquidity <amount> | "
    "submit | cancel | quit"
)


def propose(
    headline: Annotated[
        str | None, typer.Option(help="Start from a news headline instead of a query")
    ] = None,
    liquidity: Annotated[
        str | None, typer.Option(help="Initial liquidity in token units")
    ] = None,
    verbose: Annotated[  # noqa: FBT002
        bool, typer.Option("--verbose", "-v", help="Enable client logging")
    ] = False,
) -> None:
    """Chat with the market assistant to draft and create a market."""
    trading = get_config().get_trading_config()
    initial = parse_amount(liquidity) if liquidity is not None else trading.default_initial_liquidity
    if verbose:
        configure_verbose_logging()
    asyncio.run(_propose(headline=headline, liquidity=initial))


def _echo_messages(conversation: Conversation, start: int) -> int:
    """Print transcript entries from ``start`` and return the new length."""
    for message in conversation.messages[start:]:
        if message.role is Role.ASSISTANT:
            typer.echo(f"\nAssistant: {message.content}")
    return len(conversation.messages)


def _echo_proposal(proposal: Proposal, liquidity: Decimal) -> None:
    typer.echo("\n--- Market Proposal ---")
    typer.echo(f"Question:            {proposal.question}")
    typer.echo(f"Category:            {proposal.category}")
    typer.echo(f"End date:            {proposal.end_date}")
    typer.echo(f"Resolution criteria: {proposal.resolution_criteria}")
    typer.echo(f"Description:         {proposal.description}")
    if proposal.ai_probability:
        typer.echo(f"AI probability:      {proposal.ai_probability:.1%}")
    typer.echo(f"Initial liquidity:   {liquidity}")


async def _propose(*, headline: str | None, liquidity: Decimal) -> None:
    """Run the chat loop until a market is created or the user quits."""
    user_id = get_config().get_backend_config().user_id
    async with build_backend_client() as backend:
        orchestrator = build_orchestrator(backend=backend)
        machine = ProposalMachine(backend, orchestrator, user_id=user_id)
        conversation = Conversation()
        seen = 0
        if headline:
            await machine.send_headline(conversation, headline)
            seen = _echo_messages(conversation, seen)

        while conversation.state is not ProposalState.CREATED:
            if conversation.state in (ProposalState.IDLE, ProposalState.SEARCHING):
                if conversation.suggested_reply:
                    typer.echo(f"(suggested reply: {conversation.suggested_reply})")
                text = typer.prompt("\nYou (or 'custom' / 'quit')")
                if text.strip().lower() in _QUIT:
                    return
                if text.strip().lower() == "custom":
                    machine.start_custom(conversation)
                else:
                    conversation.suggested_reply = ""
                    await machine.send(conversation, text)
                seen = _echo_messages(conversation, seen)

            elif conversation.state is ProposalState.SUGGESTING:
                for index, suggestion in enumerate(conversation.suggestions, start=1):
                    typer.echo(f"  {index}. {suggestion.title or suggestion.question}")
                choice = typer.prompt("\nSelect a number, 'custom' or 'quit'").strip().lower()
                if choice in _QUIT:
                    return
                if choice == "custom":
                    machine.start_custom(conversation)
                elif choice.isdigit() and 1 <= int(choice) <= len(conversation.suggestions):
                    machine.select(conversation, int(choice) - 1)
                else:
                    typer.echo("Please enter one of the listed numbers.")
                    continue
                seen = _echo_messages(conversation, seen)

            elif conversation.state is ProposalState.EDITING and conversation.proposal:
                _echo_proposal(conversation.proposal, liquidity)
                typer.echo(_EDIT_HELP)
                command, _, rest = typer.prompt("\n>").strip().partition(" ")
                command = command.lower()
                if command in _QUIT:
                    return
                if command == "submit":
                    result = await machine.submit(conversation, liquidity)
                    for line in result.statuses or (result.message,):
                        typer.echo(f"\nAssistant: {line}")
                    seen = len(conversation.messages)
                elif command == "cancel":
                    machine.cancel(conversation)
                    seen = len(conversation.messages)
                elif command == "edit":
                    name, _, value = rest.partition(" ")
                    if name not in EDITABLE_FIELDS:
                        typer.echo(f"Editable fields: {', '.join(sorted(EDITABLE_FIELDS))}")
                        continue
                    machine.edit(conversation, name, value)
                elif command == "day":
                    try:
                        machine.set_end_day(conversation, date.fromisoformat(rest.strip()))
                    except ValueError:
                        typer.echo("Use YYYY-MM-DD.")
                elif command == "liquidity":
                    liquidity = parse_amount(rest.strip())
                else:
                    typer.echo(_EDIT_HELP)

        typer.echo(f'\nDone. "{conversation.created_title}" is live.')
