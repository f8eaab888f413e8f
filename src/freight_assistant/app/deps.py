"""
deps.py
-------
Dependency providers for FastAPI. Each factory is cached so the app shares one
session manager, analytics service, pipeline and chat service per process.
"""
from __future__ import annotations
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Optional

import structlog
from langchain_core.embeddings import DeterministicFakeEmbedding, Embeddings
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.vectorstores import InMemoryVectorStore
from langchain_openai import ChatOpenAI, OpenAIEmbeddings

from ..analytics import AnalyticsService, AnalyticsStore
from ..config import Settings, settings
from ..errors import ConfigurationError
from ..graph.graph import RagPipeline
from ..graph.memory import SessionManager
from ..graph.nodes import AnswerGenerator
from ..graph.retriever import DocumentRetriever, VectorStoreSearch
from ..models import MAX_CONTEXT_DOCS
from .chat import ChatService

logger = structlog.get_logger(__name__)


def validate_settings(cfg: Settings) -> None:
    if not 1 <= cfg.context_k <= MAX_CONTEXT_DOCS:
        raise ConfigurationError(f"CONTEXT_K must be between 1 and {MAX_CONTEXT_DOCS}")
    if cfg.search_k <= cfg.context_k:
        raise ConfigurationError("SEARCH_K must be larger than CONTEXT_K")
    if cfg.default_window_size < 1:
        raise ConfigurationError("DEFAULT_WINDOW_SIZE must be at least 1")


def make_embeddings(cfg: Settings) -> Embeddings:
    if not cfg.llm_enabled:
        # Offline mode: searchable, but not semantically meaningful.
        return DeterministicFakeEmbedding(size=256)
    return OpenAIEmbeddings(model=cfg.embedding_model, api_key=cfg.openai_api_key)


def make_chat_model(cfg: Settings) -> Optional[BaseChatModel]:
    if not cfg.llm_enabled:
        return None
    return ChatOpenAI(model=cfg.chat_model, temperature=cfg.chat_temperature, api_key=cfg.openai_api_key)


def make_vector_store(cfg: Settings) -> InMemoryVectorStore:
    embeddings = make_embeddings(cfg)
    path = Path(cfg.vector_store_path)
    if path.exists():
        logger.info("vector_store_loaded", path=str(path))
        return InMemoryVectorStore.load(str(path), embeddings)
    logger.warning("vector_store_missing", path=str(path), hint="run freight-ingest to build it")
    return InMemoryVectorStore(embeddings)


@lru_cache(maxsize=1)
def get_session_manager() -> SessionManager:
    return SessionManager(
        max_session_age=timedelta(hours=settings.session_max_age_hours),
        default_window_size=settings.default_window_size,
    )


@lru_cache(maxsize=1)
def get_analytics() -> AnalyticsService:
    store = AnalyticsStore(settings.analytics_db_url) if settings.analytics_db_url else None
    return AnalyticsService(store)


@lru_cache(maxsize=1)
def get_pipeline() -> RagPipeline:
    validate_settings(settings)
    retriever = DocumentRetriever(
        VectorStoreSearch(make_vector_store(settings)),
        search_k=settings.search_k,
        min_filtered=settings.min_filtered_docs,
        context_k=settings.context_k,
    )
    return RagPipeline(retriever, AnswerGenerator(make_chat_model(settings)))


@lru_cache(maxsize=1)
def get_chat_service() -> ChatService:
    return ChatService(get_pipeline(), get_session_manager(), get_analytics())
