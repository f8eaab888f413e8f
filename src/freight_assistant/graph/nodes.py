"""
nodes.py
--------
Answer generation and refinement against the chat model.

This module defines:
- Context / history formatting for the prompts
- `AnswerGenerator.generate` (stateless or conversational RAG prompt)
- `AnswerGenerator.refine` (second pass when validation flags the draft)

Key design notes:
- Any LangChain chat model works; production wiring uses `ChatOpenAI`, tests use
  the fake chat models from `langchain_core`.
- Optional offline/dev mode (`DEV_NO_LLM=true`, or no model configured) bypasses
  LLM calls so the app can be smoke-tested without OpenAI credentials.
- Model failures are re-raised as `GenerationError`; they end the current
  request only.
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence

import structlog
from langchain_core.language_models.chat_models import BaseChatModel

from ..errors import GenerationError
from ..models import Message, RetrievedDocument
from .prompts import conversational_rag_prompt, rag_prompt, refinement_prompt

logger = structlog.get_logger(__name__)

DEFAULT_SOURCE = "Company Document"


def format_context(context: Sequence[RetrievedDocument]) -> str:
    """`Source: <source>` header per chunk, chunks separated by a blank line, retrieval order."""
    return "\n\n".join(
        f"Source: {doc.source or DEFAULT_SOURCE}\n{doc.content}" for doc in context
    )


def format_plain_context(context: Sequence[RetrievedDocument]) -> str:
    return "\n\n".join(doc.content for doc in context)


def format_history(history: Sequence[Message]) -> str:
    return "\n\n".join(f"{m.role}: {m.content}" for m in history)


def _content_text(content: Any) -> str:
    # Chat models may return a list of content blocks instead of a string.
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return str(content or "")


# --------------------------------------------------------------------------------------
# Offline stubs (used when DEV_NO_LLM is true or no chat model is configured)
# --------------------------------------------------------------------------------------
def _offline_stub_answer(question: str, context: Sequence[RetrievedDocument]) -> str:
    """
    Produce a deterministic placeholder answer to validate end-to-end plumbing without LLMs.
    """
    if not context:
        return f"(offline) I could not find company documents about: {question}"
    first = context[0]
    excerpt = " ".join(first.content.split())[:400]
    return (
        f"(offline) Based on {first.source or DEFAULT_SOURCE}, here is what our documents say "
        f"about \"{question}\": {excerpt}"
    )


def _offline_stub_refine(prior_answer: str) -> str:
    return prior_answer.rstrip() + "\n\n(Refined offline)"


class AnswerGenerator:
    def __init__(self, llm: Optional[BaseChatModel] = None) -> None:
        self.llm = llm

    @property
    def offline(self) -> bool:
        return self.llm is None

    async def _complete(self, messages: List[Any], step: str) -> str:
        try:
            response = await self.llm.ainvoke(messages)
        except Exception as exc:
            logger.error("chat_model_failed", step=step, error=str(exc))
            raise GenerationError(f"{step} failed: {exc}") from exc
        return _content_text(getattr(response, "content", response))

    async def generate(
        self,
        question: str,
        context: Sequence[RetrievedDocument],
        history: Sequence[Message],
    ) -> str:
        """
        Build the RAG prompt (conversational when there is history) and complete it.

        Parameters
        ----------
        question : str
            The latest user question.
        context : sequence of RetrievedDocument
            Ranked chunks, formatted with their source titles.
        history : sequence of Message
            Windowed conversation history; empty for a first turn.
        """
        if self.offline:
            return _offline_stub_answer(question, context)

        if history:
            template = conversational_rag_prompt()
            variables = {
                "question": question,
                "context": format_context(context),
                "history": format_history(history),
            }
        else:
            template = rag_prompt()
            variables = {"question": question, "context": format_context(context)}

        messages = (await template.ainvoke(variables)).to_messages()
        return await self._complete(messages, "generate")

    async def refine(
        self,
        question: str,
        context: Sequence[RetrievedDocument],
        prior_answer: str,
    ) -> str:
        """Ask for an improved version of `prior_answer`; context is passed without source headers."""
        if self.offline:
            return _offline_stub_refine(prior_answer)

        messages = (
            await refinement_prompt().ainvoke(
                {
                    "question": question,
                    "context": format_plain_context(context),
                    "answer": prior_answer,
                }
            )
        ).to_messages()
        return await self._complete(messages, "refine")
