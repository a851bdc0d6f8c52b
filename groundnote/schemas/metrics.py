"""
Run Metrics & Faithfulness Schemas
===================================

Read-only snapshots derived from a finished output envelope:

1. RunMetrics          — structural / budget / citation diagnostics
2. FaithfulnessResult  — per-item similarity between claim and cited evidence
3. FaithfulnessSummary — run-level aggregate of the above
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class RunMetrics(BaseModel):
    """
    Diagnostic snapshot computed once per completed output envelope.

    Schema:
        {
          "schema_pass": true, "policy_pass": true,
          "word_count": 96, "word_limit_pass": true,
          "citation_coverage": 38, "item_count": 4, "avg_words_per_item": 24,
          "valid_citations": true, "missing_citations": [],
          "timestamp": "2026-02-10T14:30:22+00:00"
        }
    """
    schema_pass: bool = Field(description="Envelope satisfies the base output contract")
    policy_pass: bool = Field(default=True, description="Envelope satisfies its mode policy")
    word_count: int = Field(ge=0, description="Whitespace-tokenised words across all items")
    word_limit_pass: bool = Field(description="Within the mode's total and per-item budgets")
    citation_coverage: int = Field(
        ge=0, le=100,
        description="Percent of evidence-set units cited by at least one item",
    )
    item_count: int = Field(ge=0)
    avg_words_per_item: int = Field(ge=0)
    valid_citations: bool = Field(description="Every citation exists in the evidence set")
    missing_citations: list[str] = Field(default_factory=list)
    timestamp: str = Field(description="ISO-8601 UTC time of computation")


class FaithfulnessResult(BaseModel):
    """Support score of one generated item against its cited evidence."""
    item_index: int = Field(ge=0)
    item_text: str
    cited_ids: list[str] = Field(default_factory=list)
    similarity: float = Field(description="Cosine similarity, rounded to 3 decimals")
    flagged: bool
    reason: Optional[str] = None


class FaithfulnessSummary(BaseModel):
    """Run-level aggregate of faithfulness results."""
    total_items: int = Field(ge=0)
    flagged_items: int = Field(ge=0)
    avg_similarity: float
    pass_rate: int = Field(ge=0, le=100, description="Percent of unflagged items")


class FaithfulnessReport(BaseModel):
    """Per-item results plus summary."""
    results: list[FaithfulnessResult] = Field(default_factory=list)
    summary: FaithfulnessSummary

    @property
    def flagged(self) -> list[FaithfulnessResult]:
        return [r for r in self.results if r.flagged]
