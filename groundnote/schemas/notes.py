"""
Citable Unit Schema
====================

A citable unit (a "highlight") is an atomic, identified span of source
notes that generated items may cite. Units are produced once by the
segmenter and referenced, never mutated, by every later stage.

Design Decisions:
    - IDs are "H1".."Hn", assigned in document order per segmentation pass
    - Units are frozen so downstream stages cannot edit shared evidence
    - Page / chapter / location metadata is optional provenance only

Data Flow:
    Raw notes → Segmenter → CitableUnit[] → Retriever → Prompt / Validator
"""

from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

UNIT_ID_PATTERN = re.compile(r"^H[1-9]\d*\Z")


class CitableUnit(BaseModel):
    """
    An atomic, identified span of source text eligible for citation.

    Schema:
        {"unit_id": "H3", "text": "Environment design beats willpower.", "page": 42}
    """
    model_config = ConfigDict(frozen=True)

    unit_id: str = Field(description="Sequential unit ID (format: 'H{N}', N >= 1)")
    text: str = Field(min_length=1, description="Unit text (source fragment was at least 3 characters)")
    page: Optional[int] = Field(default=None, description="Source page number")
    chapter: Optional[str] = Field(default=None, description="Source chapter or section")
    location: Optional[str] = Field(default=None, description="Reader location string")

    @field_validator("unit_id")
    @classmethod
    def validate_unit_id(cls, v: str) -> str:
        if not UNIT_ID_PATTERN.match(v):
            raise ValueError("ID must match H1, H2, etc.")
        return v

    @property
    def number(self) -> int:
        """Numeric part of the ID (H12 → 12)."""
        return int(self.unit_id[1:])
