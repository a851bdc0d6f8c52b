"""
GroundNote Data Schemas
========================

Pydantic v2 models implementing the data contracts that flow through
the pipeline:

1. CitableUnit      — identified span of source notes
2. OutputEnvelope   — generated items for one mode (base shape)
3. RetrievalResult  — evidence subset chosen for a run
4. RunMetrics       — derived diagnostics of a finished run
5. Faithfulness*    — post-hoc support scores
6. Saved*           — repository records
"""

from groundnote.schemas.notes import CitableUnit, UNIT_ID_PATTERN
from groundnote.schemas.output import (
    Mode,
    OutputEnvelope,
    OutputItem,
    Strictness,
    SupportKind,
)
from groundnote.schemas.retrieval import RetrievalResult, UnitScore
from groundnote.schemas.metrics import (
    FaithfulnessReport,
    FaithfulnessResult,
    FaithfulnessSummary,
    RunMetrics,
)
from groundnote.schemas.storage import (
    AggregateStats,
    FailureReason,
    ModeStats,
    SavedNoteSet,
    SavedRun,
)

__all__ = [
    # Notes
    "CitableUnit",
    "UNIT_ID_PATTERN",
    # Output
    "Mode",
    "OutputEnvelope",
    "OutputItem",
    "Strictness",
    "SupportKind",
    # Retrieval
    "RetrievalResult",
    "UnitScore",
    # Metrics
    "FaithfulnessReport",
    "FaithfulnessResult",
    "FaithfulnessSummary",
    "RunMetrics",
    # Storage
    "AggregateStats",
    "FailureReason",
    "ModeStats",
    "SavedNoteSet",
    "SavedRun",
]
