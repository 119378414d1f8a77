"""Tests for the conversational market proposal state machine."""

import re
from datetime import date
from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from zento_markets.apps.proposal.machine import (
    CUSTOM_MARKET_MESSAGE,
    NETWORK_ERROR_MESSAGE,
    PROGRESS_CREATED,
    PROGRESS_EDIT,
    PROGRESS_SELECT,
    ProposalMachine,
)
from zento_markets.apps.proposal.models import (
    Conversation,
    ConversationStep,
    Proposal,
    ProposalState,
    ProposalStateError,
    Role,
)
from zento_markets.apps.trading.models import FailureKind, TradeAction, TradeResult
from zento_markets.clients.backend.exceptions import BackendAPIError, BackendConnectionError
from zento_markets.clients.backend.models import Suggestion, SuggestionResponse

_SESSION_ID = "sess_1"
_NOW_MS = 1_700_000_000_123
_LIQUIDITY = Decimal(10)
_QUESTION = "Will it rain in London tomorrow?"


def _suggestion(title: str = "Rain?", question: str = _QUESTION) -> Suggestion:
    """Create a complete suggestion."""
    return Suggestion(
        title=title,
        question=question,
        category="Weather",
        end_date="01/01/2030 12:00:00",
        resolution_criteria="Met office report",
        description="desc",
        ai_probability=0.4,
    )


def _markets_response(**overrides: Any) -> SuggestionResponse:
    """Create a response carrying prediction_markets suggestions."""
    values: dict[str, Any] = {
        "session_id": _SESSION_ID,
        "query": "rain",
        "suggestions": (_suggestion("Rain?"), _suggestion("Snow?", "Will it snow?")),
        "source": "prediction_markets",
        "has_prediction_markets": True,
    }
    values.update(overrides)
    return SuggestionResponse(**values)


def _mock_backend(response: SuggestionResponse | None = None) -> MagicMock:
    """Create a backend whose search and continue calls return ``response``."""
    backend = MagicMock()
    backend.search_suggestions = AsyncMock(return_value=response or _markets_response())
    backend.continue_session = AsyncMock(return_value=response or _markets_response())
    return backend


def _mock_orchestrator(*, success: bool = True) -> MagicMock:
    """Create an orchestrator whose create_market emits two status lines."""

    async def create_market(
        proposal: Proposal, liquidity: Decimal, *, on_status: Any = None
    ) -> TradeResult:
        on_status("Preparing market...")
        final = f'Market "{proposal.question}" created! Live now.' if success else "Approval failed."
        on_status(final)
        return TradeResult(
            action=TradeAction.CREATE_MARKET,
            success=success,
            message=final,
            failure=None if success else FailureKind.APPROVAL_FAILED,
            tx_hash="0xabc" if success else None,
        )

    orchestrator = MagicMock()
    orchestrator.create_market = AsyncMock(side_effect=create_market)
    return orchestrator


def _machine(
    backend: MagicMock | None = None, orchestrator: MagicMock | None = None
) -> ProposalMachine:
    return ProposalMachine(
        backend or _mock_backend(),
        orchestrator or _mock_orchestrator(),
        user_id="Creator",
        clock_ms=lambda: _NOW_MS,
    )


class TestSearching:
    """Tests for send and send_headline."""

    @pytest.mark.asyncio
    async def test_first_turn_starts_session(self) -> None:
        """Start a search and offer the returned suggestions."""
        backend = _mock_backend()
        conv = Conversation()

        await _machine(backend).send(conv, "rain")

        backend.search_suggestions.assert_awaited_once_with("rain", "Creator", None)
        assert conv.session_id == _SESSION_ID
        assert conv.state is ProposalState.SUGGESTING
        assert conv.step is ConversationStep.SELECTING
        assert conv.progress == PROGRESS_SELECT
        assert len(conv.suggestions) == 2
        assert conv.messages[0].role is Role.USER
        assert conv.messages[-1].content.startswith(
            'I found these predictions based on your query "rain".'
        )

    @pytest.mark.asyncio
    async def test_later_turn_continues_session(self) -> None:
        """Continue an existing session instead of starting a new one."""
        backend = _mock_backend(SuggestionResponse(prompt="What timeframe?"))
        conv = Conversation(session_id=_SESSION_ID)

        await _machine(backend).send(conv, "next week")

        backend.continue_session.assert_awaited_once_with(_SESSION_ID, "next week", None)
        backend.search_suggestions.assert_not_awaited()
        assert conv.state is ProposalState.SEARCHING
        assert conv.messages[-1].content == "What timeframe?"

    @pytest.mark.asyncio
    async def test_session_id_not_reassigned(self) -> None:
        """Keep the established session id when a reply carries another one."""
        backend = _mock_backend(_markets_response(session_id="sess_other"))
        conv = Conversation(session_id=_SESSION_ID)

        await _machine(backend).send(conv, "rain")

        backend.continue_session.assert_awaited_once_with(_SESSION_ID, "rain", None)
        assert conv.session_id == _SESSION_ID
        assert conv.state is ProposalState.SUGGESTING

    @pytest.mark.asyncio
    async def test_blank_input_ignored(self) -> None:
        """Do nothing for whitespace-only input."""
        backend = _mock_backend()
        conv = Conversation()

        await _machine(backend).send(conv, "   ")

        backend.search_suggestions.assert_not_awaited()
        assert conv.messages == []

    @pytest.mark.asyncio
    async def test_headline_prompt_and_intro(self) -> None:
        """Build the headline prompt and mention the headline in the intro."""
        backend = _mock_backend()
        conv = Conversation()

        await _machine(backend).send_headline(conv, "Storm hits coast")

        backend.search_suggestions.assert_awaited_once_with(
            'Based on this headline: "Storm hits coast", suggest some questions',
            "Creator",
            "Original headline: Storm hits coast",
        )
        assert conv.headline == "Storm hits coast"
        assert 'based on the headline "Storm hits coast"' in conv.messages[-1].content

    @pytest.mark.asyncio
    async def test_suggestions_list_uses_message(self) -> None:
        """Show the service message for a plain suggestions list."""
        response = _markets_response(source="suggestions", message="Here are some ideas")
        conv = Conversation()

        await _machine(_mock_backend(response)).send(conv, "rain")

        assert conv.messages[-1].content == "Here are some ideas"

    @pytest.mark.asyncio
    async def test_prompt_suppressed_with_prediction_markets(self) -> None:
        """Skip the prompt when the reply carried prediction markets."""
        response = _markets_response(prompt="Pick one")
        conv = Conversation()

        await _machine(_mock_backend(response)).send(conv, "rain")

        assert all(m.content != "Pick one" for m in conv.messages)

    @pytest.mark.asyncio
    async def test_confirm_marker_becomes_confirm_reply(self) -> None:
        """Suggest the confirm reply when the assistant says everything looks good."""
        response = SuggestionResponse(ai_suggestion="Everything looks good, confirm?")
        conv = Conversation(session_id=_SESSION_ID)

        await _machine(_mock_backend(response)).send(conv, "ok")

        assert conv.suggested_reply == "confirm"

    @pytest.mark.asyncio
    async def test_overrides_applied(self) -> None:
        """Apply proposal, step and progress overrides from the service."""
        response = SuggestionResponse(
            proposal={"question": "Q?", "category": "C"},
            current_step=2,
            progress="Almost there",
        )
        conv = Conversation(session_id=_SESSION_ID)

        await _machine(_mock_backend(response)).send(conv, "ok")

        assert conv.proposal is not None
        assert conv.proposal.question == "Q?"
        assert conv.step is ConversationStep.EDITING
        assert conv.progress == "Almost there"

    @pytest.mark.asyncio
    async def test_network_error_message(self) -> None:
        """Report transport failures and keep the session."""
        backend = _mock_backend()
        backend.continue_session.side_effect = BackendConnectionError("down")
        conv = Conversation(session_id=_SESSION_ID)

        await _machine(backend).send(conv, "hello")

        assert conv.messages[-1].content == NETWORK_ERROR_MESSAGE
        assert conv.session_id == _SESSION_ID

    @pytest.mark.asyncio
    async def test_api_error_message(self) -> None:
        """Show the service's error message."""
        backend = _mock_backend()
        backend.search_suggestions.side_effect = BackendAPIError("Quota exceeded", 429)
        conv = Conversation()

        await _machine(backend).send(conv, "hello")

        assert conv.messages[-1].content == "⚠️ Quota exceeded"

    @pytest.mark.asyncio
    async def test_send_not_allowed_while_editing(self) -> None:
        """Reject free text outside the searching states."""
        conv = Conversation(state=ProposalState.EDITING)
        with pytest.raises(ProposalStateError):
            await _machine().send(conv, "hello")


class TestSelectingAndEditing:
    """Tests for select, start_custom, edit and cancel."""

    @pytest.fixture
    def suggesting(self) -> Conversation:
        """Create a conversation offering two suggestions."""
        suggestions = [_suggestion("Rain?"), _suggestion("Snow?", "Will it snow?")]
        return Conversation(
            messages=[],
            state=ProposalState.SUGGESTING,
            suggestions=list(suggestions),
            offered_suggestions=list(suggestions),
        )

    def test_select_starts_edit(self, suggesting: Conversation) -> None:
        """Copy the suggestion into a draft and anchor status lines."""
        proposal = _machine().select(suggesting, 1)

        assert proposal.question == "Will it snow?"
        assert suggesting.state is ProposalState.EDITING
        assert suggesting.progress == PROGRESS_EDIT
        assert [s.title for s in suggesting.suggestions] == ["Snow?"]
        assert suggesting.anchor_index == 0
        assert suggesting.messages[0].content.startswith('You\'ve selected: "Snow?".')

    def test_select_synthesizes_session(self, suggesting: Conversation) -> None:
        """Create a temporary session id when none exists."""
        _machine().select(suggesting, 0)
        assert suggesting.session_id is not None
        assert re.fullmatch(rf"temp_{_NOW_MS}_[a-z0-9]{{9}}", suggesting.session_id)

    def test_select_bad_index(self, suggesting: Conversation) -> None:
        """Reject an index outside the list."""
        with pytest.raises(ProposalStateError, match="No suggestion"):
            _machine().select(suggesting, 5)

    def test_edit_question_sets_title(self, suggesting: Conversation) -> None:
        """Rewrite the title from the first 100 characters of the question."""
        machine = _machine()
        machine.select(suggesting, 0)
        long_question = "x" * 150

        machine.edit(suggesting, "question", long_question)

        assert suggesting.proposal is not None
        assert suggesting.proposal.question == long_question
        assert suggesting.proposal.title == "x" * 100

    def test_edit_unknown_field(self, suggesting: Conversation) -> None:
        """Reject edits to non-editable fields."""
        machine = _machine()
        machine.select(suggesting, 0)
        with pytest.raises(ValueError, match="not editable"):
            machine.edit(suggesting, "ai_probability", "1")

    def test_set_end_day_keeps_time(self, suggesting: Conversation) -> None:
        """Move the end date while keeping the time of day."""
        machine = _machine()
        machine.select(suggesting, 0)
        machine.set_end_day(suggesting, date(2031, 2, 3))
        assert suggesting.proposal is not None
        assert suggesting.proposal.end_date == "03/02/2031 12:00:00"

    def test_cancel_restores_suggestions(self, suggesting: Conversation) -> None:
        """Go back to the full suggestion list."""
        machine = _machine()
        machine.select(suggesting, 0)
        machine.cancel(suggesting)

        assert suggesting.state is ProposalState.SUGGESTING
        assert suggesting.proposal is None
        assert len(suggesting.suggestions) == 2

    def test_custom_draft_and_cancel(self) -> None:
        """Start an empty draft and reset to idle on cancel."""
        machine = _machine()
        conv = Conversation(session_id=_SESSION_ID)

        proposal = machine.start_custom(conv)

        assert proposal.question == ""
        assert conv.is_custom
        assert conv.messages[-1].content == CUSTOM_MARKET_MESSAGE

        machine.cancel(conv)

        assert conv.state is ProposalState.IDLE
        assert conv.messages == []
        assert conv.step is ConversationStep.SEARCHING
        assert conv.session_id == _SESSION_ID

    def test_edit_requires_editing(self) -> None:
        """Reject edits outside EDITING."""
        with pytest.raises(ProposalStateError):
            _machine().edit(Conversation(), "title", "x")


class TestSubmitting:
    """Tests for submit and reset."""

    @pytest.fixture
    def editing(self) -> Conversation:
        """Create a conversation editing a selected suggestion."""
        conv = Conversation(
            session_id=_SESSION_ID,
            state=ProposalState.SUGGESTING,
            suggestions=[_suggestion()],
            offered_suggestions=[_suggestion()],
        )
        conv.append(Role.USER, "rain")
        _machine().select(conv, 0)
        conv.say("Anything else to change?")
        return conv

    @pytest.mark.asyncio
    async def test_success_moves_to_created(self, editing: Conversation) -> None:
        """Clear the draft and session and move the summary to the end."""
        orchestrator = _mock_orchestrator()

        result = await _machine(orchestrator=orchestrator).submit(editing, _LIQUIDITY)

        assert result.success
        assert orchestrator.create_market.await_args.args[1] == _LIQUIDITY
        assert editing.state is ProposalState.CREATED
        assert editing.step is ConversationStep.SUBMITTED
        assert editing.progress == PROGRESS_CREATED
        assert editing.created_title == _QUESTION
        assert editing.proposal is None
        assert editing.session_id is None
        assert editing.anchor_index == -1
        assert editing.messages[-1].content == f'Market "{_QUESTION}" created! Live now.'
        # Earlier status lines stay right after the anchor
        assert editing.messages[2].content == "Preparing market..."

    @pytest.mark.asyncio
    async def test_failure_returns_to_editing(self, editing: Conversation) -> None:
        """Keep the draft and session after a failed submission."""
        result = await _machine(orchestrator=_mock_orchestrator(success=False)).submit(
            editing, _LIQUIDITY
        )

        assert not result.success
        assert result.failure is FailureKind.APPROVAL_FAILED
        assert editing.state is ProposalState.EDITING
        assert editing.proposal is not None
        assert editing.session_id == _SESSION_ID
        # Status lines are inserted after the selection message, newest first
        assert editing.messages[2].content == "Approval failed."
        assert editing.messages[3].content == "Preparing market..."
        assert editing.messages[-1].content == "Anything else to change?"

    @pytest.mark.asyncio
    async def test_exception_returns_to_editing(self, editing: Conversation) -> None:
        """Restore EDITING when the pipeline raises unexpectedly."""
        orchestrator = MagicMock()
        orchestrator.create_market = AsyncMock(side_effect=RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            await _machine(orchestrator=orchestrator).submit(editing, _LIQUIDITY)

        assert editing.state is ProposalState.EDITING

    @pytest.mark.asyncio
    async def test_reset_after_created(self, editing: Conversation) -> None:
        """Start over from a clean conversation."""
        machine = _machine()
        await machine.submit(editing, _LIQUIDITY)

        machine.reset(editing)

        assert editing == Conversation()

    def test_reset_requires_created(self) -> None:
        """Reject reset before a market was created."""
        with pytest.raises(ProposalStateError):
            _machine().reset(Conversation())
