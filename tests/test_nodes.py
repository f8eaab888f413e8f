from unittest.mock import AsyncMock, Mock

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import AIMessage

from freight_assistant.errors import GenerationError
from freight_assistant.graph.nodes import (
    AnswerGenerator,
    format_context,
    format_history,
    format_plain_context,
)
from freight_assistant.graph.prompts import build_handoff_message
from freight_assistant.models import Message

from conftest import failing_llm, doc


CONTEXT = [
    doc("Barley rail rate: USD 42 per tonne.", "Barley.docx", "Barley"),
    doc("Hopper cars are booked weekly."),
]


def recording_llm(reply: str = "answer") -> Mock:
    llm = Mock()
    llm.ainvoke = AsyncMock(return_value=AIMessage(content=reply))
    return llm


def prompt_text(llm: Mock) -> str:
    messages = llm.ainvoke.call_args.args[0]
    return "\n".join(m.content for m in messages)


class TestFormatting:
    def test_context_has_source_headers_in_order(self):
        assert format_context(CONTEXT) == (
            "Source: Barley.docx\nBarley rail rate: USD 42 per tonne.\n\n"
            "Source: Company Document\nHopper cars are booked weekly."
        )

    def test_plain_context_has_no_sources(self):
        assert format_plain_context(CONTEXT) == (
            "Barley rail rate: USD 42 per tonne.\n\nHopper cars are booked weekly."
        )

    def test_history_lines(self):
        history = [Message(role="human", content="hi"), Message(role="assistant", content="hello")]
        assert format_history(history) == "human: hi\n\nassistant: hello"


class TestGenerate:
    async def test_stateless_prompt_without_history(self):
        llm = recording_llm()
        answer = await AnswerGenerator(llm).generate("Barley by rail?", CONTEXT, [])
        text = prompt_text(llm)
        assert answer == "answer"
        assert "Source: Barley.docx" in text
        assert "Conversation so far" not in text

    async def test_conversational_prompt_with_history(self):
        llm = recording_llm()
        history = [
            Message(role="human", content="What is the rate for Barley by rail?"),
            Message(role="assistant", content="USD 42 per tonne."),
        ]
        await AnswerGenerator(llm).generate("And the transit time?", CONTEXT, history)
        text = prompt_text(llm)
        assert "Conversation so far" in text
        assert "human: What is the rate for Barley by rail?" in text
        assert "assistant: USD 42 per tonne." in text

    async def test_works_with_langchain_fake_model(self):
        generator = AnswerGenerator(FakeListChatModel(responses=["USD 42 per tonne."]))
        assert await generator.generate("Barley by rail?", CONTEXT, []) == "USD 42 per tonne."

    async def test_failure_raises_generation_error(self):
        with pytest.raises(GenerationError):
            await AnswerGenerator(failing_llm()).generate("Barley by rail?", CONTEXT, [])

    async def test_offline_mode(self):
        answer = await AnswerGenerator(None).generate("Barley by rail?", CONTEXT, [])
        assert answer.startswith("(offline)")
        assert "Barley.docx" in answer


class TestRefine:
    async def test_refinement_prompt_includes_previous_answer(self):
        llm = recording_llm("better answer")
        refined = await AnswerGenerator(llm).refine("Barley by rail?", CONTEXT, "USD 42.")
        text = prompt_text(llm)
        assert refined == "better answer"
        assert "Previous answer:\nUSD 42." in text
        assert "Source:" not in text

    async def test_failure_raises_generation_error(self):
        with pytest.raises(GenerationError):
            await AnswerGenerator(failing_llm()).refine("q", CONTEXT, "a")


def test_handoff_message_quotes_question():
    message = build_handoff_message("  What is the rate\nfor Barley?  ")
    assert '"What is the rate for Barley?"' in message
    assert "logistics team" in message
