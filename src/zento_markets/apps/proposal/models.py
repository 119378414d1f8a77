"""Data models for the conversational market proposal flow.

``Proposal`` and ``Conversation`` are deliberately mutable: the user edits
the draft field by field, and the transcript grows turn by turn. Every
transition of ``ProposalMachine`` takes the ``Conversation`` it operates
on explicitly, so one machine can drive any number of independent chats.
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any

from zento_markets.clients.backend.models import Suggestion
from zento_markets.core.exceptions import ZentoError

TITLE_MAX_LENGTH = 100

EDITABLE_FIELDS = frozenset(
    {"question", "title", "category", "end_date", "resolution_criteria", "description"}
)


class ProposalStateError(ZentoError):
    """Raise when a transition is not allowed from the conversation's state."""


class Role(Enum):
    """Author of a transcript message."""

    USER = "user"
    ASSISTANT = "assistant"


class ConversationStep(IntEnum):
    """Progress step shown alongside the conversation."""

    SEARCHING = 0
    SELECTING = 1
    EDITING = 2
    SUBMITTED = 3


class ProposalState(Enum):
    """Lifecycle state of a market-authoring conversation."""

    IDLE = "idle"
    SEARCHING = "searching"
    SUGGESTING = "suggesting"
    EDITING = "editing"
    SUBMITTING = "submitting"
    CREATED = "created"


@dataclass(frozen=True)
class Message:
    """One transcript entry.

    Args:
        role: Who wrote the message.
        content: Message text.

    """

    role: Role
    content: str


@dataclass
class Proposal:
    """Draft market the user is preparing to create.

    The advisory fields (``ai_probability``, ``confidence``,
    ``sentiment_score``, ``key_factors``, ``sources``, ``context``) are
    display-only and never sent to the ledger.
    """

    question: str = ""
    title: str = ""
    category: str = ""
    end_date: str = ""
    resolution_criteria: str = ""
    description: str = ""
    ai_probability: float = 0.0
    confidence: float = 0.0
    sentiment_score: float = 0.0
    key_factors: list[str] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)
    context: str = ""

    @classmethod
    def from_suggestion(cls, suggestion: Suggestion) -> "Proposal":
        """Start a draft from a backend suggestion."""
        return cls(
            question=suggestion.question,
            title=suggestion.title,
            category=suggestion.category,
            end_date=suggestion.end_date,
            resolution_criteria=suggestion.resolution_criteria,
            description=suggestion.description,
            ai_probability=suggestion.ai_probability,
            confidence=suggestion.confidence,
            sentiment_score=suggestion.sentiment_score,
            key_factors=list(suggestion.key_factors),
            sources=list(suggestion.sources),
            context=suggestion.context,
        )

    @classmethod
    def from_mapping(cls, raw: dict[str, Any]) -> "Proposal":
        """Build a draft from a backend ``proposal`` payload, ignoring unknown keys."""
        return cls.from_suggestion(Suggestion.from_dict(raw))

    def update(self, name: str, value: str) -> None:
        """Set one editable text field.

        Editing the question also rewrites the title to the question's
        first 100 characters.

        Args:
            name: Field to edit (see ``EDITABLE_FIELDS``).
            value: New value.

        Raises:
            ValueError: If the field is not editable.

        """
        if name not in EDITABLE_FIELDS:
            msg = f"Field {name!r} is not editable; choose one of {sorted(EDITABLE_FIELDS)}"
            raise ValueError(msg)
        setattr(self, name, value)
        if name == "question":
            self.title = value[:TITLE_MAX_LENGTH]

    def validate(self) -> str | None:
        """Return the first validation failure message, or ``None`` when valid.

        Fields are checked in order: question, category, end date,
        resolution criteria. Whether the end date lies in the future is
        checked separately when the date is parsed.
        """
        if not self.question.strip():
            return "Enter a market question."
        if not self.category.strip():
            return "Enter a category."
        if not self.end_date:
            return "Select an end date."
        if not self.resolution_criteria.strip():
            return "Add resolution criteria."
        return None


@dataclass
class Conversation:
    """Aggregate state of one market-authoring chat.

    The transcript is append-only, except for status lines that the create
    pipeline inserts directly after the anchor (the message that opened
    the current draft). ``suggestions`` holds the active choice list;
    ``offered_suggestions`` remembers the last full list so that backing
    out of an edit can show it again.
    """

    messages: list[Message] = field(default_factory=list)
    session_id: str | None = None
    step: ConversationStep = ConversationStep.SEARCHING
    progress: str = ""
    state: ProposalState = ProposalState.IDLE
    suggestions: list[Suggestion] = field(default_factory=list)
    offered_suggestions: list[Suggestion] = field(default_factory=list)
    proposal: Proposal | None = None
    is_custom: bool = False
    anchor_index: int = -1
    suggested_reply: str = ""
    headline: str | None = None
    created_title: str = ""

    def append(self, role: Role, content: str) -> None:
        """Append a message to the end of the transcript."""
        self.messages.append(Message(role=role, content=content))

    def say(self, content: str) -> None:
        """Append an assistant message."""
        self.append(Role.ASSISTANT, content)

    def insert_status(self, content: str) -> None:
        """Insert an assistant status line right after the anchor.

        Without an anchor the line is appended instead.
        """
        message = Message(role=Role.ASSISTANT, content=content)
        if self.anchor_index >= 0:
            self.messages.insert(self.anchor_index + 1, message)
        else:
            self.messages.append(message)
