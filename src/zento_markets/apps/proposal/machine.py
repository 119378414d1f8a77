"""State machine for the conversational market-authoring flow.

A conversation moves ``IDLE -> SEARCHING -> SUGGESTING -> EDITING ->
SUBMITTING -> CREATED``. Failed submissions return to ``EDITING`` with the
draft intact, and cancelling an edit goes back to ``SUGGESTING`` (or to
``IDLE`` for a custom draft). Every transition takes the ``Conversation``
it acts on; the machine itself only holds its collaborators.
"""

import logging
import secrets
import string
import time
from collections.abc import Callable
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from zento_markets.apps.proposal.models import (
    Conversation,
    ConversationStep,
    Proposal,
    ProposalState,
    ProposalStateError,
    Role,
)
from zento_markets.clients.backend.exceptions import BackendAPIError, BackendConnectionError
from zento_markets.clients.backend.models import SuggestionResponse
from zento_markets.core.timestamps import replace_end_day

if TYPE_CHECKING:
    from zento_markets.apps.trading.models import TradeResult
    from zento_markets.apps.trading.orchestrator import TradeOrchestrator
    from zento_markets.clients.backend.client import BackendClient

logger = logging.getLogger(__name__)

NETWORK_ERROR_MESSAGE = "⚠️ Network error. Please check your connection and try again."
CUSTOM_MARKET_MESSAGE = (
    "Let's create your custom market! Fill in the details below "
    "and I'll help you create a prediction market."
)
PROGRESS_SELECT = "Select Market Suggestion"
PROGRESS_EDIT = "Editing Market Proposal"
PROGRESS_CUSTOM = "Creating Custom Market"
PROGRESS_CREATED = "Market Created!"
CONFIRM_REPLY = "confirm"

_CONFIRM_MARKER = "Everything looks good"
_SESSION_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
_SESSION_SUFFIX_LENGTH = 9


def _temp_session_id(now_ms: int) -> str:
    """Synthesize a local session id (``temp_<ms>_<9 chars>``)."""
    suffix = "".join(
        secrets.choice(_SESSION_SUFFIX_ALPHABET) for _ in range(_SESSION_SUFFIX_LENGTH)
    )
    return f"temp_{now_ms}_{suffix}"


class ProposalMachine:
    """Drive market-authoring conversations against the suggestion service.

    Args:
        backend: Suggestion service client.
        orchestrator: Executes the create-market pipeline on submission.
        user_id: Identifier sent when a new session is started.
        clock_ms: Returns the current time in milliseconds.

    """

    def __init__(
        self,
        backend: "BackendClient",
        orchestrator: "TradeOrchestrator",
        user_id: str = "Creator",
        clock_ms: Callable[[], int] | None = None,
    ) -> None:
        """Initialize the machine with its collaborators.

        Args:
            backend: Suggestion service client.
            orchestrator: Executes the create-market pipeline on submission.
            user_id: Identifier sent when a new session is started.
            clock_ms: Returns the current time in milliseconds.

        """
        self._backend = backend
        self._orchestrator = orchestrator
        self._user_id = user_id
        self._clock_ms = clock_ms or (lambda: time.time_ns() // 1_000_000)

    @staticmethod
    def _require(conversation: Conversation, *allowed: ProposalState) -> None:
        if conversation.state not in allowed:
            names = ", ".join(state.name for state in allowed)
            msg = f"Cannot do that while {conversation.state.name}; expected one of {names}"
            raise ProposalStateError(msg)

    @staticmethod
    def _draft(conversation: Conversation) -> Proposal:
        if conversation.proposal is None:
            raise ProposalStateError("No proposal is being edited")
        return conversation.proposal

    # ------------------------------------------------------------------
    # Searching
    # ------------------------------------------------------------------

    async def send(self, conversation: Conversation, text: str) -> None:
        """Send a free-text turn to the suggestion service.

        Blank input is ignored. The first turn of a session starts a search;
        later turns continue the session. Service and network failures are
        reported as an assistant message and leave the session intact.

        Args:
            conversation: Conversation to advance.
            text: User input.

        Raises:
            ProposalStateError: Outside ``IDLE`` and ``SEARCHING``.

        """
        self._require(conversation, ProposalState.IDLE, ProposalState.SEARCHING)
        if not text.strip():
            return
        await self._exchange(conversation, text, context=None)

    async def send_headline(self, conversation: Conversation, headline: str) -> None:
        """Ask for market suggestions derived from a news headline.

        Args:
            conversation: Conversation to advance.
            headline: Headline text.

        Raises:
            ProposalStateError: Outside ``IDLE`` and ``SEARCHING``.

        """
        self._require(conversation, ProposalState.IDLE, ProposalState.SEARCHING)
        if not headline.strip():
            return
        conversation.headline = headline
        prompt = f'Based on this headline: "{headline}", suggest some questions'
        await self._exchange(conversation, prompt, context=f"Original headline: {headline}")

    async def _exchange(self, conversation: Conversation, text: str, context: str | None) -> None:
        conversation.append(Role.USER, text)
        conversation.state = ProposalState.SEARCHING
        try:
            if conversation.session_id is None:
                response = await self._backend.search_suggestions(text, self._user_id, context)
            else:
                response = await self._backend.continue_session(
                    conversation.session_id, text, context
                )
        except BackendConnectionError:
            logger.warning("Suggestion request failed", exc_info=True)
            conversation.say(NETWORK_ERROR_MESSAGE)
            return
        except BackendAPIError as exc:
            logger.warning("Suggestion service rejected request: %s", exc)
            conversation.say(f"⚠️ {exc.msg}")
            return
        self._apply(conversation, response, text)

    def _apply(self, conversation: Conversation, response: SuggestionResponse, text: str) -> None:
        """Fold one successful service reply into the conversation."""
        if response.session_id and conversation.session_id is None:
            conversation.session_id = response.session_id

        if response.suggestions:
            conversation.suggestions = list(response.suggestions)
            conversation.offered_suggestions = list(response.suggestions)
            conversation.state = ProposalState.SUGGESTING
            conversation.step = ConversationStep.SELECTING
            conversation.progress = PROGRESS_SELECT
            if response.source == "prediction_markets":
                conversation.say(self._suggestion_intro(conversation, response, text))
            elif response.message:
                conversation.say(response.message)
        elif response.ai_suggestion:
            reply = response.ai_suggestion
            conversation.suggested_reply = CONFIRM_REPLY if _CONFIRM_MARKER in reply else reply

        if response.proposal:
            conversation.proposal = Proposal.from_mapping(response.proposal)
        if response.current_step:
            try:
                conversation.step = ConversationStep(response.current_step)
            except ValueError:
                logger.debug("Ignoring unknown step %d", response.current_step)
        if response.progress:
            conversation.progress = response.progress
        if response.prompt and not response.has_prediction_markets:
            conversation.say(response.prompt)

    @staticmethod
    def _suggestion_intro(
        conversation: Conversation, response: SuggestionResponse, text: str
    ) -> str:
        if conversation.headline is not None:
            return (
                "I found these prediction markets based on the headline "
                f'"{conversation.headline}". Please select one to customize, '
                "or create a custom market."
            )
        return (
            f'I found these predictions based on your query "{response.query or text}". '
            "Please select one to customize, or create a custom market."
        )

    # ------------------------------------------------------------------
    # Suggesting
    # ------------------------------------------------------------------

    def select(self, conversation: Conversation, index: int) -> Proposal:
        """Pick a suggestion and start editing it.

        Args:
            conversation: Conversation in ``SUGGESTING``.
            index: Position of the suggestion in ``conversation.suggestions``.

        Returns:
            The new draft.

        Raises:
            ProposalStateError: Outside ``SUGGESTING`` or for a bad index.

        """
        self._require(conversation, ProposalState.SUGGESTING)
        if not 0 <= index < len(conversation.suggestions):
            msg = f"No suggestion at index {index}"
            raise ProposalStateError(msg)
        suggestion = conversation.suggestions[index]
        if conversation.session_id is None:
            conversation.session_id = _temp_session_id(self._clock_ms())

        conversation.suggestions = [suggestion]
        conversation.proposal = Proposal.from_suggestion(suggestion)
        conversation.is_custom = False
        conversation.state = ProposalState.EDITING
        conversation.step = ConversationStep.EDITING
        conversation.progress = PROGRESS_EDIT
        conversation.anchor_index = len(conversation.messages)
        conversation.say(
            f'You\'ve selected: "{suggestion.title}". '
            "Now you can make any changes before creating the market."
        )
        return conversation.proposal

    def start_custom(self, conversation: Conversation) -> Proposal:
        """Start editing an empty, user-authored draft.

        Args:
            conversation: Conversation in ``IDLE``, ``SEARCHING`` or ``SUGGESTING``.

        Returns:
            The new, empty draft.

        Raises:
            ProposalStateError: From any other state.

        """
        self._require(
            conversation,
            ProposalState.IDLE,
            ProposalState.SEARCHING,
            ProposalState.SUGGESTING,
        )
        conversation.suggestions = []
        conversation.proposal = Proposal(context="Custom market")
        conversation.is_custom = True
        conversation.state = ProposalState.EDITING
        conversation.step = ConversationStep.EDITING
        conversation.progress = PROGRESS_CUSTOM
        conversation.anchor_index = len(conversation.messages)
        conversation.say(CUSTOM_MARKET_MESSAGE)
        return conversation.proposal

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def edit(self, conversation: Conversation, name: str, value: str) -> None:
        """Change one field of the draft. No network calls are made.

        Raises:
            ProposalStateError: Outside ``EDITING``.
            ValueError: If the field is not editable.

        """
        self._require(conversation, ProposalState.EDITING)
        self._draft(conversation).update(name, value)

    def set_end_day(self, conversation: Conversation, day: date) -> None:
        """Move the draft's end date to ``day``, keeping its time of day."""
        self._require(conversation, ProposalState.EDITING)
        draft = self._draft(conversation)
        draft.end_date = replace_end_day(draft.end_date, day)

    def cancel(self, conversation: Conversation) -> None:
        """Abandon the draft.

        A custom draft resets the conversation to ``IDLE`` with an empty
        transcript. A draft started from a suggestion returns to
        ``SUGGESTING`` with the previously offered suggestions.

        Raises:
            ProposalStateError: Outside ``EDITING``.

        """
        self._require(conversation, ProposalState.EDITING)
        conversation.proposal = None
        conversation.anchor_index = -1
        if conversation.is_custom:
            conversation.is_custom = False
            conversation.messages.clear()
            conversation.suggestions = []
            conversation.step = ConversationStep.SEARCHING
            conversation.progress = ""
            conversation.state = ProposalState.IDLE
            return
        conversation.suggestions = list(conversation.offered_suggestions)
        conversation.step = ConversationStep.SELECTING
        conversation.progress = PROGRESS_SELECT
        conversation.state = ProposalState.SUGGESTING

    # ------------------------------------------------------------------
    # Submitting
    # ------------------------------------------------------------------

    async def submit(self, conversation: Conversation, initial_liquidity: Decimal) -> "TradeResult":
        """Hand the draft to the create-market pipeline.

        Every status line of the pipeline is inserted right after the
        anchor. On success the conversation moves to ``CREATED``, the
        session and draft are cleared and the success message is moved to
        the end of the transcript. On failure the conversation returns to
        ``EDITING`` with the draft untouched.

        Args:
            conversation: Conversation in ``EDITING``.
            initial_liquidity: Liquidity to seed the market with, in token units.

        Returns:
            The pipeline's result.

        Raises:
            ProposalStateError: Outside ``EDITING``.

        """
        self._require(conversation, ProposalState.EDITING)
        draft = self._draft(conversation)
        conversation.state = ProposalState.SUBMITTING
        try:
            result = await self._orchestrator.create_market(
                draft, initial_liquidity, on_status=conversation.insert_status
            )
        finally:
            if conversation.state is ProposalState.SUBMITTING:
                conversation.state = ProposalState.EDITING

        if not result.success:
            logger.info("Market creation failed: %s", result.message)
            return result

        summary_index = conversation.anchor_index + 1
        if 0 < summary_index < len(conversation.messages):
            conversation.messages.append(conversation.messages.pop(summary_index))
        conversation.state = ProposalState.CREATED
        conversation.step = ConversationStep.SUBMITTED
        conversation.progress = PROGRESS_CREATED
        conversation.created_title = draft.question
        conversation.proposal = None
        conversation.session_id = None
        conversation.anchor_index = -1
        conversation.is_custom = False
        return result

    def reset(self, conversation: Conversation) -> None:
        """Start a fresh conversation after a market was created.

        Raises:
            ProposalStateError: Outside ``CREATED``.

        """
        self._require(conversation, ProposalState.CREATED)
        fresh = Conversation()
        for name, value in vars(fresh).items():
            setattr(conversation, name, value)
