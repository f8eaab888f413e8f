"""
guardrails.py
-------------
Answer validation heuristics: decide whether a draft needs a refinement pass
and whether the conversation should be handed to a human.
The two signals are independent. Both predicates are pure and never raise.
"""
from __future__ import annotations
from typing import Any, Optional, Sequence

from ..models import RetrievedDocument
from .scoring import score_context_relevance

MIN_ANSWER_CHARS = 40
MIN_ANSWER_WORDS = 8
MAX_ANSWER_CHARS = 4000

# Below this the retrieved context is not trusted to ground an answer.
LOW_RELEVANCE_THRESHOLD = 0.3
# Below this the answer is worth a refinement pass.
REFINE_RELEVANCE_THRESHOLD = 0.5

HEDGING_PHRASES = [
    "i don't know",
    "i do not know",
    "not sure",
    "i'm unable",
    "i am unable",
    "i cannot find",
    "i can't find",
    "cannot find",
    "no information",
    "not mentioned",
    "not provided in the context",
    "does not contain",
    "doesn't contain",
    "unclear",
    "as an ai",
]

# Phrases that on their own justify escalation.
UNCERTAINTY_PHRASES = [
    "i don't know",
    "i do not know",
    "not sure",
    "i'm unable",
    "i am unable",
    "i cannot find",
    "i can't find",
    "cannot find",
]

ESCALATION_REQUESTS = [
    "speak to a human",
    "talk to a human",
    "real person",
    "human agent",
    "speak to someone",
    "talk to someone",
    "customer service",
    "representative",
    "call me",
    "complaint",
]


def _contains_any(text: str, phrases: Sequence[str]) -> bool:
    low = text.lower()
    return any(p in low for p in phrases)


def is_acceptable(answer: Any, question: Any) -> bool:
    """
    True when the draft can be returned as-is.

    Rejects empty or very short answers, runaway answers, hedging answers and
    answers that simply echo the question.
    """
    if not isinstance(answer, str):
        return False
    text = answer.strip()
    if len(text) < MIN_ANSWER_CHARS or len(text.split()) < MIN_ANSWER_WORDS:
        return False
    if len(text) > MAX_ANSWER_CHARS:
        return False
    if _contains_any(text, HEDGING_PHRASES):
        return False
    if isinstance(question, str) and text.lower().rstrip("?.! ") == question.strip().lower().rstrip("?.! "):
        return False
    return True


def needs_human_help(
    question: Any,
    context: Any,
    answer: Any,
    context_relevance: Optional[float] = None,
) -> bool:
    """
    True when confidence is too low to answer without a person.

    Signals: the user asked for a person, no grounding context, context relevance
    under `LOW_RELEVANCE_THRESHOLD`, or an empty / hedging answer.
    """
    try:
        if isinstance(question, str) and _contains_any(question, ESCALATION_REQUESTS):
            return True

        docs = [d for d in (context or []) if isinstance(d, RetrievedDocument)]
        if not docs:
            return True

        if context_relevance is None:
            context_relevance = score_context_relevance(docs, question if isinstance(question, str) else "")
        if context_relevance < LOW_RELEVANCE_THRESHOLD:
            return True

        if not isinstance(answer, str) or not answer.strip():
            return True
        return _contains_any(answer, UNCERTAINTY_PHRASES)
    except (TypeError, ValueError):
        return False


def needs_refinement(answer: Any, question: Any, context_relevance: float) -> bool:
    """Refine drafts that fail `is_acceptable` or rest on middling context."""
    if not is_acceptable(answer, question):
        return True
    return context_relevance < REFINE_RELEVANCE_THRESHOLD
