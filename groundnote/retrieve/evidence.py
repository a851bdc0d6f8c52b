"""
Evidence Retriever
===================

Narrows the citable units handed to the generator down to the ones
relevant to the requested mode.

Architecture:
    Mode → Query Plan → Embed(units + queries) → per-query top-k ≥ threshold
         → max score per unit → union (original order) → RetrievalResult

Key Design Decisions:
    - Each mode has a fixed query plan probing different facets (thesis,
      mechanisms, analogies, ...). A unit qualifies by excelling at any
      one facet, so selection is a per-query top-k union rather than a
      single global ranking.
    - Units and queries are embedded in one call so a remote provider
      sees a single request stream.
    - Small note sets (≤ short_circuit_units) skip filtering entirely.
"""

from __future__ import annotations

import logging

from groundnote.config import GroundNoteConfig
from groundnote.ingest.embedder import BaseEmbedder
from groundnote.retrieve.similarity import cosine_similarity
from groundnote.schemas.notes import CitableUnit
from groundnote.schemas.output import Mode
from groundnote.schemas.retrieval import RetrievalResult, UnitScore

logger = logging.getLogger("groundnote.retrieve.evidence")


# ── Query Plans ────────────────────────────────────────────────────

QUERY_PLANS: dict[Mode, list[str]] = {
    Mode.ONE_MINUTE: [
        "main thesis and central argument of the text",
        "key supporting points and evidence",
        "conclusion and final takeaways",
    ],
    Mode.TECHNICAL: [
        "frameworks, models, and formal definitions",
        "mechanisms, processes, and how things work",
        "tradeoffs, limitations, and nuances",
        "technical terminology and precise concepts",
    ],
    Mode.KID_FRIENDLY: [
        "core idea explained simply",
        "concrete examples and real-world comparisons",
        "analogies, metaphors, and relatable descriptions",
    ],
    Mode.INTERVIEW: [
        "actionable skills and competencies",
        "key insights and unique learnings",
        "professional takeaways and applications",
        "quantifiable outcomes and results",
        "unique perspectives that show expertise",
    ],
}


class EvidenceRetriever:
    """
    Multi-query, max-score, top-k union retriever.

    Usage:
        retriever = EvidenceRetriever(HashEmbedder(), top_k=5, threshold=0.15)
        result = retriever.retrieve(units, Mode.TECHNICAL)
        result.evidence_set   # subset of units, original order

    Args:
        embedder: Embedding strategy (never raises).
        top_k: Units kept per query.
        threshold: Minimum cosine score for a unit to be kept by a query.
        short_circuit_units: Unit counts at or below this return everything.
    """

    def __init__(
        self,
        embedder: BaseEmbedder,
        top_k: int = 5,
        threshold: float = 0.15,
        short_circuit_units: int = 6,
    ):
        self.embedder = embedder
        self.top_k = top_k
        self.threshold = threshold
        self.short_circuit_units = short_circuit_units

    @classmethod
    def from_config(cls, config: GroundNoteConfig, embedder: BaseEmbedder) -> "EvidenceRetriever":
        """Create a retriever from GroundNote config."""
        return cls(
            embedder=embedder,
            top_k=config.retrieval.top_k,
            threshold=config.retrieval.threshold,
            short_circuit_units=config.retrieval.short_circuit_units,
        )

    def retrieve(self, units: list[CitableUnit], mode: Mode) -> RetrievalResult:
        """
        Select the units most relevant to at least one query of the mode.

        Args:
            units: All citable units, in document order.
            mode: Task mode whose query plan is used.

        Returns:
            RetrievalResult with the evidence set in original unit order
            and per-unit max scores sorted by relevance.
        """
        mode = Mode(mode)
        queries = QUERY_PLANS[mode]

        if len(units) <= self.short_circuit_units:
            return RetrievalResult(
                evidence_set=list(units),
                total_units=len(units),
                retrieved_count=len(units),
                queries=list(queries),
                scores=[UnitScore(unit_id=u.unit_id, max_score=1.0) for u in units],
                short_circuited=True,
            )

        vectors = self.embedder.embed([u.text for u in units] + list(queries))
        unit_vectors = vectors[:len(units)]
        query_vectors = vectors[len(units):]

        best: dict[str, float] = {}
        for query_vec in query_vectors:
            scored = [
                (unit.unit_id, cosine_similarity(query_vec, unit_vec))
                for unit, unit_vec in zip(units, unit_vectors)
            ]
            scored.sort(key=lambda pair: pair[1], reverse=True)
            for unit_id, score in scored[:self.top_k]:
                if score >= self.threshold:
                    best[unit_id] = max(best.get(unit_id, score), score)

        scores = sorted(
            (UnitScore(unit_id=uid, max_score=s) for uid, s in best.items()),
            key=lambda us: us.max_score,
            reverse=True,
        )
        evidence_set = [u for u in units if u.unit_id in best]

        logger.info(
            f"Retrieved {len(evidence_set)}/{len(units)} units for mode "
            f"'{mode.value}' ({len(queries)} queries)"
        )
        return RetrievalResult(
            evidence_set=evidence_set,
            total_units=len(units),
            retrieved_count=len(evidence_set),
            queries=list(queries),
            scores=scores,
        )
