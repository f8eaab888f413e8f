"""
config.py
-----------
Typed configuration loader for environment variables, pathing, and constants.
This centralizes settings so other modules can import a single authoritative source.
"""
from __future__ import annotations
import os
from pathlib import Path
from pydantic import BaseModel, Field
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


class Settings(BaseModel):
    openai_api_key: str = Field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    chat_model: str = Field(default_factory=lambda: os.getenv("CHAT_MODEL", "gpt-4o-mini"))
    chat_temperature: float = Field(default_factory=lambda: float(os.getenv("CHAT_TEMPERATURE", "0.2")))
    embedding_model: str = Field(default_factory=lambda: os.getenv("EMBEDDING_MODEL", "text-embedding-3-small"))
    vector_store_path: str = Field(default_factory=lambda: os.getenv("VECTOR_STORE_PATH", "./data/vector_store.json"))

    # Knowledge base ingestion
    knowledge_base_dir: str = Field(default_factory=lambda: os.getenv("KNOWLEDGE_BASE_DIR", "./data/knowledge_base"))
    chunk_size: int = Field(default_factory=lambda: int(os.getenv("CHUNK_SIZE", "1500")))
    chunk_overlap: int = Field(default_factory=lambda: int(os.getenv("CHUNK_OVERLAP", "300")))

    # Retrieval
    search_k: int = Field(default_factory=lambda: int(os.getenv("SEARCH_K", "12")))
    context_k: int = Field(default_factory=lambda: int(os.getenv("CONTEXT_K", "4")))
    min_filtered_docs: int = Field(default_factory=lambda: int(os.getenv("MIN_FILTERED_DOCS", "3")))

    # Sessions
    session_max_age_hours: float = Field(default_factory=lambda: float(os.getenv("SESSION_MAX_AGE_HOURS", "24")))
    default_window_size: int = Field(default_factory=lambda: int(os.getenv("DEFAULT_WINDOW_SIZE", "10")))
    session_cleanup_interval_seconds: float = Field(
        default_factory=lambda: float(os.getenv("SESSION_CLEANUP_INTERVAL_SECONDS", "3600"))
    )

    # Analytics; an empty URL disables the store
    analytics_db_url: str = Field(
        default_factory=lambda: os.getenv("ANALYTICS_DB_URL", "sqlite+aiosqlite:///./data/analytics.db")
    )

    dev_no_llm: bool = Field(default_factory=lambda: _env_bool("DEV_NO_LLM"))
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_json: bool = Field(default_factory=lambda: _env_bool("LOG_JSON"))
    project_name: str = Field(default_factory=lambda: os.getenv("PROJECT_NAME", "freight-assistant"))

    @property
    def llm_enabled(self) -> bool:
        return bool(self.openai_api_key) and not self.dev_no_llm

    def ensure_dirs(self) -> None:
        Path(self.vector_store_path).parent.mkdir(parents=True, exist_ok=True)
        prefix = "sqlite+aiosqlite:///"
        if self.analytics_db_url.startswith(prefix):
            db_path = self.analytics_db_url[len(prefix):]
            if db_path and db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)


settings = Settings()
