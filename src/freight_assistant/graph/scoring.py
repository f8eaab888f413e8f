"""
scoring.py
----------
Lexical relevance heuristics used to re-rank retrieved chunks and to estimate
how well the selected context covers a question.

`RelevanceScorer` is the seam: the retriever, validator and pipeline only see
the protocol, so a cross-encoder or LLM grader can be dropped in later.
"""
from __future__ import annotations

import math
import re
from typing import List, Protocol, Sequence, Set

from ..models import RetrievedDocument


STOP_WORDS: Set[str] = {
    "a", "about", "an", "and", "are", "as", "at", "be", "by", "can", "could",
    "do", "does", "for", "from", "have", "how", "i", "in", "is", "it", "me",
    "my", "of", "on", "or", "our", "please", "should", "tell", "that", "the",
    "there", "this", "to", "we", "what", "when", "where", "which", "who",
    "why", "will", "with", "would", "you", "your",
}

# Terms that make a chunk more useful for pricing/logistics questions.
WEIGHTED_TERMS = {
    "rate": 1.5, "rates": 1.5, "price": 1.5, "pricing": 1.5, "cost": 1.5,
    "tariff": 1.5, "fee": 1.3, "fees": 1.3, "surcharge": 1.3,
    "transit": 1.2, "schedule": 1.2, "delivery": 1.2,
}

_TOKEN = re.compile(r"[a-z0-9]+(?:[.,][0-9]+)?")


def tokenize(text: str) -> List[str]:
    """Lowercase word tokens with stop words removed and trailing plural 's' folded."""
    tokens = []
    for tok in _TOKEN.findall((text or "").lower()):
        if tok in STOP_WORDS:
            continue
        if len(tok) > 3 and tok.endswith("s") and not tok.endswith("ss"):
            tok = tok[:-1]
        tokens.append(tok)
    return tokens


class RelevanceScorer(Protocol):
    def score_document(self, question: str, document: RetrievedDocument) -> float: ...

    def score_context(self, documents: Sequence[RetrievedDocument], question: str) -> float: ...


class LexicalRelevanceScorer:
    """
    Term-overlap scorer.

    score_document: weighted fraction of question terms found in the chunk,
    plus a bonus when the chunk's `source` title mentions a question term and a
    small bonus for chunks that carry numbers (rates, weights, dates).

    score_context: blend of the best chunk and the union coverage of all chunks,
    clipped to [0, 1].
    """

    source_bonus = 0.25
    numeric_bonus = 0.05

    def _weight(self, term: str) -> float:
        return WEIGHTED_TERMS.get(term, 1.0)

    def coverage(self, question_terms: Set[str], text_terms: Set[str]) -> float:
        if not question_terms:
            return 0.0
        total = sum(self._weight(t) for t in question_terms)
        hit = sum(self._weight(t) for t in question_terms if t in text_terms)
        return hit / total

    def score_document(self, question: str, document: RetrievedDocument) -> float:
        q_terms = set(tokenize(question))
        if not q_terms:
            return 0.0
        doc_terms = set(tokenize(document.content))
        score = self.coverage(q_terms, doc_terms)

        source_terms = set(tokenize(str(document.source or "")))
        if q_terms & source_terms:
            score += self.source_bonus
        if any(ch.isdigit() for ch in document.content):
            score += self.numeric_bonus
        return score

    def score_context(self, documents: Sequence[RetrievedDocument], question: str) -> float:
        if not documents:
            return 0.0
        q_terms = set(tokenize(question))
        if not q_terms:
            return 0.0

        covered: Set[str] = set()
        best = 0.0
        for doc in documents:
            terms = set(tokenize(doc.content)) | set(tokenize(str(doc.source or "")))
            covered |= terms
            best = max(best, self.coverage(q_terms, terms))

        union = self.coverage(q_terms, covered)
        score = 0.6 * best + 0.4 * union
        if math.isnan(score):
            return 0.0
        return min(1.0, max(0.0, score))


default_scorer = LexicalRelevanceScorer()


def score_document_relevance(question: str, document: RetrievedDocument) -> float:
    return default_scorer.score_document(question, document)


def score_context_relevance(documents: Sequence[RetrievedDocument], question: str) -> float:
    return default_scorer.score_context(documents, question)


def rank_documents(
    documents: Sequence[RetrievedDocument],
    question: str,
    scorer: RelevanceScorer = default_scorer,
) -> List[RetrievedDocument]:
    """Sort by descending score; `sorted` is stable so ties keep search order."""
    scored = [(scorer.score_document(question, doc), doc) for doc in documents]
    return [doc for _, doc in sorted(scored, key=lambda pair: -pair[0])]
