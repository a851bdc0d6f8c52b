"""
Retrieval Result Schema
========================

Derived, per-request record of which citable units the retriever kept
for a mode and why. Never persisted as authoritative; recomputed for
every generation run.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from groundnote.schemas.notes import CitableUnit


class UnitScore(BaseModel):
    """Best query similarity observed for one retained unit."""
    unit_id: str
    max_score: float = Field(description="Maximum cosine score across all queries")


class RetrievalResult(BaseModel):
    """
    Output of the evidence retriever.

    `evidence_set` keeps the original unit order; `scores` is sorted by
    descending relevance for display and debugging.
    """
    evidence_set: list[CitableUnit] = Field(default_factory=list)
    total_units: int = Field(ge=0, description="Units available before filtering")
    retrieved_count: int = Field(ge=0, description="Units in the evidence set")
    queries: list[str] = Field(default_factory=list, description="Query plan used")
    scores: list[UnitScore] = Field(default_factory=list)
    short_circuited: bool = Field(
        default=False,
        description="True when the unit count was too small to filter",
    )

    @property
    def evidence_ids(self) -> list[str]:
        return [u.unit_id for u in self.evidence_set]
