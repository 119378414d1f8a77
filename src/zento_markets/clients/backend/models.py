"""Typed data models for suggestion service payloads.

The service returns loosely shaped JSON whose optional keys vary between
endpoints and turns. Normalise it here, once, so the proposal state
machine only ever sees frozen dataclasses with well-defined defaults.
"""

from dataclasses import dataclass
from typing import Any, cast


def _str(value: Any) -> str:
    return "" if value is None else str(value)


def _float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _str_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(item) for item in cast("list[Any]", value))


@dataclass(frozen=True)
class Suggestion:
    """One AI-proposed market, with advisory scores.

    Args:
        title: Short market title.
        question: Full market question.
        category: Market category label.
        end_date: Proposed end date (``DD/MM/YYYY[ HH:MM:SS]``).
        resolution_criteria: How the market will be resolved.
        description: Long-form description.
        context: Background the suggestion was derived from.
        ai_probability: Model's estimate of the YES probability (0-1).
        confidence: Model's confidence in the estimate (0-1).
        sentiment_score: Sentiment of the underlying sources (0-1).
        key_factors: Factors the model considered most relevant.
        sources: Source references.

    """

    title: str = ""
    question: str = ""
    category: str = ""
    end_date: str = ""
    resolution_criteria: str = ""
    description: str = ""
    context: str = ""
    ai_probability: float = 0.0
    confidence: float = 0.0
    sentiment_score: float = 0.0
    key_factors: tuple[str, ...] = ()
    sources: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Suggestion":
        """Build a suggestion from a raw payload item, tolerating missing keys."""
        return cls(
            title=_str(raw.get("title")),
            question=_str(raw.get("question")),
            category=_str(raw.get("category")),
            end_date=_str(raw.get("end_date")),
            resolution_criteria=_str(raw.get("resolution_criteria")),
            description=_str(raw.get("description")),
            context=_str(raw.get("context")),
            ai_probability=_float(raw.get("ai_probability")),
            confidence=_float(raw.get("confidence")),
            sentiment_score=_float(raw.get("sentiment_score")),
            key_factors=_str_tuple(raw.get("key_factors")),
            sources=_str_tuple(raw.get("sources")),
        )


@dataclass(frozen=True)
class SuggestionResponse:
    """Normalised reply from ``search-suggestions`` or ``continue``.

    Args:
        session_id: Conversation session assigned by the service, if any.
        query: Query echoed back by the service.
        suggestions: Market suggestions, from ``prediction_markets`` when
            present and non-empty, else from ``suggestions``.
        source: ``"prediction_markets"`` or ``"suggestions"`` naming the
            list the suggestions came from; empty when there are none.
        has_prediction_markets: Whether the payload carried a
            ``prediction_markets`` key at all (even an empty one).
        message: Free-text message accompanying a ``suggestions`` list.
        ai_suggestion: Suggested next reply for the user.
        proposal: Draft market proposal fields, if the service sent one.
        current_step: Conversation step override (0 means none).
        progress: Progress label override.
        prompt: Next assistant prompt.

    """

    session_id: str = ""
    query: str = ""
    suggestions: tuple[Suggestion, ...] = ()
    source: str = ""
    has_prediction_markets: bool = False
    message: str = ""
    ai_suggestion: str = ""
    proposal: dict[str, Any] | None = None
    current_step: int = 0
    progress: str = ""
    prompt: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SuggestionResponse":
        """Normalise a raw service payload.

        Args:
            data: Decoded JSON body of a successful response.

        Returns:
            A ``SuggestionResponse`` with every optional key defaulted.

        """
        markets = data.get("prediction_markets")
        listed = data.get("suggestions")
        items: list[Any] = []
        source = ""
        if isinstance(markets, list) and markets:
            items, source = cast("list[Any]", markets), "prediction_markets"
        elif isinstance(listed, list) and listed:
            items, source = cast("list[Any]", listed), "suggestions"
        suggestions = tuple(
            Suggestion.from_dict(cast("dict[str, Any]", item))
            for item in items
            if isinstance(item, dict)
        )
        proposal = data.get("proposal")
        try:
            current_step = int(data.get("current_step") or 0)
        except (TypeError, ValueError):
            current_step = 0
        return cls(
            session_id=_str(data.get("session_id")),
            query=_str(data.get("query")),
            suggestions=suggestions,
            source=source if suggestions else "",
            has_prediction_markets=markets is not None,
            message=_str(data.get("message")),
            ai_suggestion=_str(data.get("ai_suggestion")),
            proposal=cast("dict[str, Any]", proposal) if isinstance(proposal, dict) else None,
            current_step=current_step,
            progress=_str(data.get("progress")),
            prompt=_str(data.get("prompt")),
        )
