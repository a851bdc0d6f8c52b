"""
Faithfulness Evaluator
=======================

Post-hoc check that each generated item is actually supported by the
units it cites.

For every item:
    1. Resolve its citations to unit texts (unknown IDs are ignored)
    2. No resolvable citation → flagged, similarity 0, no embedding call
    3. Otherwise embed [item text, cited texts joined with spaces] in
       one batch and take the cosine similarity
    4. Flag when similarity < threshold (default 0.45)

This is a cheap lexical/semantic proxy, not an entailment check: a high
score means the item talks about the same things as its evidence.
"""

from __future__ import annotations

import logging

from groundnote.config import GroundNoteConfig
from groundnote.ingest.embedder import BaseEmbedder
from groundnote.ingest.segmenter import unit_map
from groundnote.retrieve.similarity import cosine_similarity
from groundnote.schemas.metrics import (
    FaithfulnessReport,
    FaithfulnessResult,
    FaithfulnessSummary,
)
from groundnote.schemas.notes import CitableUnit
from groundnote.schemas.output import OutputItem
from groundnote.utils import percent, round_half_up

logger = logging.getLogger("groundnote.evaluate.faithfulness")

NO_EVIDENCE_REASON = "No valid cited highlights found"


def low_similarity_reason(similarity: float) -> str:
    return f"Low similarity ({similarity * 100:.1f}%) - possible unsupported claim"


class FaithfulnessEvaluator:
    """
    Scores generated items against their cited units.

    Usage:
        evaluator = FaithfulnessEvaluator(HashEmbedder(), threshold=0.45)
        report = evaluator.evaluate(envelope.items, units)
        report.summary.pass_rate

    Args:
        embedder: Embedding strategy used for both sides of the comparison.
        threshold: Items scoring below this are flagged.
    """

    def __init__(self, embedder: BaseEmbedder, threshold: float = 0.45):
        self.embedder = embedder
        self.threshold = threshold

    @classmethod
    def from_config(cls, config: GroundNoteConfig, embedder: BaseEmbedder) -> "FaithfulnessEvaluator":
        return cls(embedder=embedder, threshold=config.evaluation.faithfulness_threshold)

    def evaluate_item(
        self, index: int, item: OutputItem, units_by_id: dict[str, CitableUnit]
    ) -> FaithfulnessResult:
        cited_texts = [units_by_id[cid].text for cid in item.citations if cid in units_by_id]
        if not cited_texts:
            return FaithfulnessResult(
                item_index=index,
                item_text=item.text,
                cited_ids=list(item.citations),
                similarity=0.0,
                flagged=True,
                reason=NO_EVIDENCE_REASON,
            )

        item_vec, evidence_vec = self.embedder.embed([item.text, " ".join(cited_texts)])
        similarity = cosine_similarity(item_vec, evidence_vec)
        flagged = similarity < self.threshold
        return FaithfulnessResult(
            item_index=index,
            item_text=item.text,
            cited_ids=list(item.citations),
            similarity=round_half_up(similarity, 3),
            flagged=flagged,
            reason=low_similarity_reason(similarity) if flagged else None,
        )

    def evaluate(self, items: list[OutputItem], units: list[CitableUnit]) -> FaithfulnessReport:
        """
        Score every item and aggregate.

        Returns:
            FaithfulnessReport with per-item results (input order) and a
            summary: average similarity (3 decimals) and pass rate (%).
        """
        units_by_id = unit_map(units)
        results = [self.evaluate_item(i, item, units_by_id) for i, item in enumerate(items)]

        flagged = sum(1 for r in results if r.flagged)
        avg = sum(r.similarity for r in results) / len(results) if results else 0.0
        summary = FaithfulnessSummary(
            total_items=len(results),
            flagged_items=flagged,
            avg_similarity=round_half_up(avg, 3),
            pass_rate=percent(len(results) - flagged, len(results)),
        )
        logger.info(
            f"Faithfulness: {flagged}/{len(results)} flagged, "
            f"avg similarity {summary.avg_similarity:.3f}"
        )
        return FaithfulnessReport(results=results, summary=summary)
