"""Question-answering pipeline: classifier, retriever, generator, validator and state machine."""

from .graph import RagPipeline, Stage, TRANSITIONS
from .memory import SessionManager

__all__ = ["RagPipeline", "SessionManager", "Stage", "TRANSITIONS"]
