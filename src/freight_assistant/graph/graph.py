"""
graph.py
--------
LangGraph wiring. Defines the state machine and stage transitions.

Flow:
START -> categorize -> retrieve -> generate -> validate
      -> (refine ->) human_assistance -> END

Edges live in `TRANSITIONS`; the only conditional edge is the one leaving
`validate`. The graph is compiled once per pipeline and has no cycles.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Union

import structlog
from langgraph.graph import END, START, StateGraph

from ..models import Message, PipelineState
from .categories import classify_question
from .guardrails import needs_human_help, needs_refinement
from .nodes import AnswerGenerator
from .prompts import build_handoff_message
from .retriever import DocumentRetriever
from .scoring import RelevanceScorer, default_scorer

logger = structlog.get_logger(__name__)


class Stage(str, Enum):
    CATEGORIZE = "categorize"
    RETRIEVE = "retrieve"
    GENERATE = "generate"
    VALIDATE = "validate"
    REFINE = "refine"
    HUMAN_ASSISTANCE = "human_assistance"


def route_after_validate(state: PipelineState) -> str:
    """Refine flagged drafts; everything else goes straight to the handoff check."""
    return Stage.REFINE.value if state.needs_refinement else Stage.HUMAN_ASSISTANCE.value


Edge = Union[Stage, str, Callable[[PipelineState], str]]

TRANSITIONS: Dict[Stage, Edge] = {
    Stage.CATEGORIZE: Stage.RETRIEVE,
    Stage.RETRIEVE: Stage.GENERATE,
    Stage.GENERATE: Stage.VALIDATE,
    Stage.VALIDATE: route_after_validate,
    Stage.REFINE: Stage.HUMAN_ASSISTANCE,
    Stage.HUMAN_ASSISTANCE: END,
}

# Targets the conditional edge may pick.
VALIDATE_BRANCHES = {s.value: s.value for s in (Stage.REFINE, Stage.HUMAN_ASSISTANCE)}

Node = Callable[[PipelineState], Awaitable[PipelineState]]


def _target(edge: Union[Stage, str]) -> str:
    return edge.value if isinstance(edge, Stage) else edge


def _as_state(result: Any) -> PipelineState:
    """The compiled graph hands back its channel values as a dict."""
    if isinstance(result, PipelineState):
        return result
    return PipelineState.model_validate(result)


class RagPipeline:
    """Runs one question through the stages. Holds no per-request state."""

    def __init__(
        self,
        retriever: DocumentRetriever,
        generator: AnswerGenerator,
        scorer: RelevanceScorer = default_scorer,
        classifier: Callable[[str], object] = classify_question,
    ) -> None:
        self.retriever = retriever
        self.generator = generator
        self.scorer = scorer
        self.classifier = classifier
        self.nodes: Dict[Stage, Node] = {
            Stage.CATEGORIZE: self.node_categorize,
            Stage.RETRIEVE: self.node_retrieve,
            Stage.GENERATE: self.node_generate,
            Stage.VALIDATE: self.node_validate,
            Stage.REFINE: self.node_refine,
            Stage.HUMAN_ASSISTANCE: self.node_human_assistance,
        }
        self.graph = self.build_graph()

    def build_graph(self):
        """Build and compile the LangGraph state machine from `TRANSITIONS`."""
        g = StateGraph(PipelineState)
        for stage, node in self.nodes.items():
            g.add_node(stage.value, self._timed(stage, node))

        g.add_edge(START, Stage.CATEGORIZE.value)
        for stage, edge in TRANSITIONS.items():
            if callable(edge):
                g.add_conditional_edges(stage.value, edge, VALIDATE_BRANCHES)
            else:
                g.add_edge(stage.value, _target(edge))
        return g.compile()

    @staticmethod
    def _timed(stage: Stage, node: Node) -> Node:
        async def run(state: PipelineState) -> PipelineState:
            started = time.perf_counter()
            result = await node(state)
            logger.debug(
                "stage_completed",
                stage=stage.value,
                session_id=state.session_id,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            return result

        return run

    # ----------------------------------------------------------------------------------
    # Nodes
    # ----------------------------------------------------------------------------------
    async def node_categorize(self, state: PipelineState) -> PipelineState:
        state.category = self.classifier(state.question)
        return state

    async def node_retrieve(self, state: PipelineState) -> PipelineState:
        context = await self.retriever.retrieve(state.question, state.category)
        state.context = context
        state.context_relevance = self.scorer.score_context(context, state.question)
        return state

    async def node_generate(self, state: PipelineState) -> PipelineState:
        state.answer = await self.generator.generate(state.question, state.context, state.history)
        return state

    async def node_validate(self, state: PipelineState) -> PipelineState:
        """Both flags are computed against the unrefined answer."""
        state.needs_refinement = needs_refinement(state.answer, state.question, state.context_relevance)
        state.needs_human_assistance = needs_human_help(
            state.question, state.context, state.answer, state.context_relevance
        )
        return state

    async def node_refine(self, state: PipelineState) -> PipelineState:
        if not state.needs_refinement:
            state.final_answer = state.answer
            return state
        state.final_answer = await self.generator.refine(state.question, state.context, state.answer)
        return state

    async def node_human_assistance(self, state: PipelineState) -> PipelineState:
        """Escalation wins over any refined text."""
        if state.needs_human_assistance:
            state.final_answer = build_handoff_message(state.question)
        else:
            state.final_answer = state.final_answer or state.answer
        return state

    # ----------------------------------------------------------------------------------
    # Run
    # ----------------------------------------------------------------------------------
    async def ainvoke(
        self,
        question: str,
        history: Optional[Sequence[Message]] = None,
        session_id: str = "",
    ) -> PipelineState:
        """
        Answer a single user turn.

        Returns the terminal PipelineState. Generation errors propagate; a failed
        vector search only leaves the context empty.
        """
        initial = PipelineState(question=question, history=list(history or []), session_id=session_id)
        result = _as_state(await self.graph.ainvoke(initial))
        logger.info(
            "pipeline_completed",
            session_id=session_id,
            category=result.category.value,
            context_docs=len(result.context),
            context_relevance=round(result.context_relevance, 3),
            needs_refinement=result.needs_refinement,
            needs_human_assistance=result.needs_human_assistance,
        )
        return result
