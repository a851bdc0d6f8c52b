"""
Storage Schemas
================

Records kept by the note-set repository: a note set owns its raw text,
its segmented units and an append-only list of runs.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from groundnote.schemas.metrics import RunMetrics
from groundnote.schemas.notes import CitableUnit
from groundnote.schemas.output import Mode, OutputItem


class SavedRun(BaseModel):
    """One completed generation run."""
    run_id: str
    mode: Mode
    items: list[OutputItem] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    metrics: RunMetrics
    config_hash: str = ""
    timestamp: str


class SavedNoteSet(BaseModel):
    """A named collection of notes with its run history."""
    note_set_id: str
    title: str
    raw_text: str
    units: list[CitableUnit] = Field(default_factory=list)
    runs: list[SavedRun] = Field(default_factory=list)
    created_at: str
    updated_at: str


class ModeStats(BaseModel):
    count: int = 0
    pass_count: int = 0


class FailureReason(BaseModel):
    reason: str
    count: int


class AggregateStats(BaseModel):
    """Dashboard-style statistics across every stored run."""
    total_note_sets: int = 0
    total_runs: int = 0
    pass_rate: int = 0
    avg_coverage: int = 0
    avg_word_count: int = 0
    word_limit_pass_rate: int = 0
    runs_by_mode: dict[str, ModeStats] = Field(
        default_factory=lambda: {m.value: ModeStats() for m in Mode}
    )
    recent_runs: list[SavedRun] = Field(default_factory=list)
    failure_reasons: list[FailureReason] = Field(default_factory=list)
