"""
prompts.py
----------
Centralized prompts for the answer generator, versioned via constants.
"""
from __future__ import annotations

from langchain_core.prompts import ChatPromptTemplate

SYSTEM_ASSISTANT = """You are a customer support assistant for a freight and commodity logistics company.
Answer using only the company documents provided as context.

Constraints:
- Quote rates, units, currencies and validity dates exactly as written in the context.
- Mention the source document when you rely on it.
- If the context does not contain the answer, say so plainly; do not invent figures.
- Keep answers concise; prefer short paragraphs or bullets.
"""

RAG_TEMPLATE = """Context:
{context}

Question: {question}

Answer the question using the context above."""

CONVERSATIONAL_RAG_TEMPLATE = """Conversation so far:
{history}

Context:
{context}

Question: {question}

Answer the latest question using the context above. Use the conversation only to
resolve references such as "it" or "that route"."""

SYSTEM_REFINER = """You are a careful editor improving a support answer.
Keep every fact that is supported by the context, remove anything that is not,
and make the answer complete, direct and easy to read."""

REFINEMENT_TEMPLATE = """Question: {question}

Context:
{context}

Previous answer:
{answer}

Write an improved answer. If the context cannot answer the question, say that
clearly and suggest contacting the team."""

HANDOFF_TEMPLATE = (
    "Thank you for your question about \"{question}\". I want to make sure you get an "
    "accurate answer, so I'm passing this to a member of our logistics team. "
    "A specialist will follow up with you shortly. In the meantime you can also reach "
    "us through the contact details on our website."
)


def rag_prompt() -> ChatPromptTemplate:
    return ChatPromptTemplate.from_messages([("system", SYSTEM_ASSISTANT), ("human", RAG_TEMPLATE)])


def conversational_rag_prompt() -> ChatPromptTemplate:
    return ChatPromptTemplate.from_messages(
        [("system", SYSTEM_ASSISTANT), ("human", CONVERSATIONAL_RAG_TEMPLATE)]
    )


def refinement_prompt() -> ChatPromptTemplate:
    return ChatPromptTemplate.from_messages([("system", SYSTEM_REFINER), ("human", REFINEMENT_TEMPLATE)])


def build_handoff_message(question: str) -> str:
    question = " ".join((question or "").split())
    if len(question) > 120:
        question = question[:117] + "..."
    return HANDOFF_TEMPLATE.format(question=question)
