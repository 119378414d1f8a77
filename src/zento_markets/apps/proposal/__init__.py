"""Conversational market proposal flow."""

from zento_markets.apps.proposal.machine import ProposalMachine
from zento_markets.apps.proposal.models import (
    Conversation,
    ConversationStep,
    Message,
    Proposal,
    ProposalState,
    ProposalStateError,
    Role,
)

__all__ = [
    "Conversation",
    "ConversationStep",
    "Message",
    "Proposal",
    "ProposalMachine",
    "ProposalState",
    "ProposalStateError",
    "Role",
]
