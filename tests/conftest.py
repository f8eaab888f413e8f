"""
Shared fixtures: a scripted vector search, fake chat models, a controllable
clock and an in-memory analytics store.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from freight_assistant.analytics import AnalyticsService, AnalyticsStore
from freight_assistant.app.chat import ChatService
from freight_assistant.graph.graph import RagPipeline
from freight_assistant.graph.memory import SessionManager
from freight_assistant.graph.nodes import AnswerGenerator
from freight_assistant.graph.retriever import DocumentRetriever
from freight_assistant.models import RetrievedDocument


GOOD_ANSWER = (
    "Rail freight for barley is USD 42 per tonne from Saskatoon to Vancouver, "
    "with a transit time of 5-7 days (source: Barley.docx)."
)


def doc(content: str, source: Optional[str] = None, category: Optional[str] = None) -> RetrievedDocument:
    metadata = {}
    if source is not None:
        metadata["source"] = source
    if category is not None:
        metadata["category"] = category
    return RetrievedDocument(content=content, metadata=metadata)


class FakeSearch:
    """Returns a fixed candidate list (in search-rank order) and records calls."""

    def __init__(self, docs: Optional[List[RetrievedDocument]] = None, error: Optional[Exception] = None):
        self.docs = list(docs or [])
        self.error = error
        self.calls = []

    async def search(self, query: str, k: int) -> List[RetrievedDocument]:
        self.calls.append((query, k))
        if self.error is not None:
            raise self.error
        return self.docs[:k]


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def knowledge_base() -> List[RetrievedDocument]:
    return [
        doc("Air cargo rates from Toronto to Frankfurt start at CAD 3.10 per kg.", "Air Cargo Rates.docx", "Air Cargo"),
        doc(
            "Barley rail freight rate: USD 42 per tonne from Saskatoon to Vancouver by rail, transit 5-7 days.",
            "Barley.docx",
            "Barley",
        ),
        doc("Rail logistics services cover hopper cars for grain and pulses.", "Rail Logistics Services.docx", "Rail Logistics"),
        doc("Feed barley is shipped in bulk; malting barley requires segregated storage.", "Barley.docx", "Barley"),
        doc("Barley export documentation includes a phytosanitary certificate.", "Barley.docx", "Barley"),
        doc("Oats are loaded in 20ft containers with a 25 tonne maximum.", "Oats.docx", "Oats"),
    ]


@pytest.fixture
def fake_search(knowledge_base) -> FakeSearch:
    return FakeSearch(knowledge_base)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def failing_llm(error: Exception = RuntimeError("completion service down")) -> Mock:
    llm = Mock()
    llm.ainvoke = AsyncMock(side_effect=error)
    return llm


def make_pipeline(search, responses: List[str]) -> RagPipeline:
    return RagPipeline(DocumentRetriever(search), AnswerGenerator(FakeListChatModel(responses=responses)))


@pytest.fixture
def pipeline(fake_search) -> RagPipeline:
    return make_pipeline(fake_search, [GOOD_ANSWER])


@pytest.fixture
def sessions(clock) -> SessionManager:
    return SessionManager(clock=clock)


@pytest_asyncio.fixture
async def analytics_store():
    store = AnalyticsStore("sqlite+aiosqlite:///:memory:")
    assert await store.init()
    yield store
    await store.close()


@pytest.fixture
def analytics(analytics_store, clock) -> AnalyticsService:
    return AnalyticsService(analytics_store, clock=clock)


@pytest.fixture
def chat_service(pipeline, sessions, analytics) -> ChatService:
    return ChatService(pipeline, sessions, analytics)
