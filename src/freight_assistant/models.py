"""
models.py
---------
Pydantic models used by the API layer, the pipeline state and analytics.
"""
from __future__ import annotations
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


MAX_CONTEXT_DOCS = 4


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Category(str, Enum):
    """Knowledge base topics. Declaration order breaks classifier ties."""
    GENERAL = "General"
    BARLEY = "Barley"
    CHICKPEAS = "Chickpeas"
    GREEN_LENTILS = "Green Lentils"
    RED_LENTILS = "Red Lentils"
    MILLET = "Millet"
    OATS = "Oats"
    PEAS = "Peas"
    AIR_CARGO = "Air Cargo"
    RAIL_LOGISTICS = "Rail Logistics"
    OOG_CARGO = "OOG Cargo"


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["human", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=utcnow)


class RetrievedDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def source(self) -> Optional[str]:
        return self.metadata.get("source")

    @property
    def category(self) -> Optional[str]:
        return self.metadata.get("category")


class PipelineState(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    question: str
    history: List[Message] = Field(default_factory=list)
    session_id: str = ""
    category: Category = Category.GENERAL
    context: List[RetrievedDocument] = Field(default_factory=list, max_length=MAX_CONTEXT_DOCS)
    context_relevance: float = Field(default=0.0, ge=0.0, le=1.0)
    answer: str = ""
    needs_refinement: bool = False
    needs_human_assistance: bool = False
    final_answer: str = ""


class AnalyticsRecord(BaseModel):
    timestamp: datetime = Field(default_factory=utcnow)
    session_id: str
    question: str
    answer: str
    context_sources: List[str] = Field(default_factory=list)
    response_time_ms: float = 0.0
    human_assistance_needed: bool = False
    category: str = Category.GENERAL.value
    relevance_score: float = 0.0
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None


class ChatRequest(BaseModel):
    prompt: str = Field(..., min_length=1, description="User's question")
    session_id: Optional[str] = Field(None, description="Session id returned by a previous turn")
    window_size: Optional[int] = Field(None, ge=1, description="Override of the conversation window")


class ChatMetadata(BaseModel):
    session_active: bool = True
    needs_human_assistance: bool = False
    response_time_ms: float = 0.0
    category: str = Category.GENERAL.value
    context_relevance: float = 0.0


class ChatResponse(BaseModel):
    status: str = "Success"
    message: str
    session_id: str
    metadata: ChatMetadata


class WindowSizeRequest(BaseModel):
    window_size: int = Field(..., ge=1)
