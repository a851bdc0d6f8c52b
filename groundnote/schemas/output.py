"""
Output Envelope Schema
=======================

The output envelope is what the generation collaborator is asked to
produce, and the unit the output contract validator checks atomically:

    {
      "mode": "oneMinute",
      "items": [
        {"text": "...", "citations": ["H1", "H4"], "support": "direct"}
      ],
      "warnings": []
    }

The models here only encode the *base shape* (known mode, non-empty
items, non-empty text, well-formed citations). Mode-specific rules such
as word budgets live in `groundnote.contract.policy` as data.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from groundnote.schemas.notes import UNIT_ID_PATTERN


class Mode(str, Enum):
    """
    Task modes. The value is the wire name the model must echo back.

    - ONE_MINUTE:   compact summary (thesis, key points, conclusion)
    - TECHNICAL:    technical deep dive
    - KID_FRIENDLY: simplified language, analogy required
    - INTERVIEW:    exactly five short bullets
    """
    ONE_MINUTE = "oneMinute"
    TECHNICAL = "technical"
    KID_FRIENDLY = "kidFriendly"
    INTERVIEW = "interview"

    @classmethod
    def values(cls) -> list[str]:
        return [m.value for m in cls]


class Strictness(str, Enum):
    """How far generated claims may go beyond the literal evidence."""
    STRICT = "strict"       # no inference; every item is "direct"
    BALANCED = "balanced"   # labelled, mild inference allowed


class SupportKind(str, Enum):
    """Whether a claim is stated in the evidence or lightly inferred."""
    DIRECT = "direct"
    INFERRED = "inferred"


class OutputItem(BaseModel):
    """A single generated claim with its citations."""
    text: str = Field(description="Item text (non-empty)")
    citations: list[str] = Field(description="Cited unit IDs, at least one")
    support: Optional[SupportKind] = Field(default=None, description="direct | inferred")

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Item text cannot be empty")
        return v.strip()

    @field_validator("citations")
    @classmethod
    def validate_citations(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("Every item must cite ≥1 highlight")
        bad = [c for c in v if not UNIT_ID_PATTERN.match(c)]
        if bad:
            raise ValueError(f"Citation must match H1, H2, etc. (got {', '.join(map(repr, bad))})")
        # ordered set: repeats collapse to the first occurrence
        return list(dict.fromkeys(v))


class OutputEnvelope(BaseModel):
    """A complete generated answer for one mode."""
    mode: Mode = Field(description="Task mode this output was produced for")
    items: list[OutputItem] = Field(description="Ordered generated items (≥1)")
    warnings: list[str] = Field(default_factory=list, description="Free-text caveats")

    @field_validator("items")
    @classmethod
    def validate_items(cls, v: list[OutputItem]) -> list[OutputItem]:
        if not v:
            raise ValueError("Must produce ≥1 item")
        return v

    @field_validator("warnings", mode="before")
    @classmethod
    def default_warnings(cls, v):
        return [] if v is None else v

    @property
    def texts(self) -> list[str]:
        return [item.text for item in self.items]

    @property
    def cited_ids(self) -> list[str]:
        """Distinct cited IDs in first-seen order."""
        seen: dict[str, None] = {}
        for item in self.items:
            for cid in item.citations:
                seen.setdefault(cid, None)
        return list(seen)
