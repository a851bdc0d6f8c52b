"""
Note Segmenter
===============

Splits raw notes into an ordered sequence of citable units.

Architecture:
    Raw Text → Blank-line Blocks → (List Lines | Joined Paragraph) → CitableUnit[]

Key Properties:
    1. Blocks are separated by blank lines (whitespace-only lines count)
    2. A block whose non-empty lines all carry a list marker (-, *, •,
       "3." or "3)") yields one unit per line, marker stripped
    3. Any other block is one unit, its lines joined with single spaces
    4. Fragments shorter than `min_unit_chars` (measured on the source
       line, marker included) are dropped
    5. IDs H1..Hn are assigned after filtering, in document order
"""

from __future__ import annotations

import logging
import re

from groundnote.schemas.notes import CitableUnit

logger = logging.getLogger("groundnote.ingest.segmenter")

_BLOCK_SPLIT = re.compile(r"\n\s*\n")
_LIST_MARKER = re.compile(r"^(?:[-*•]|\d+[.)])\s+")


def _split_blocks(raw: str) -> list[list[str]]:
    """Split text into blocks of trimmed, non-empty lines."""
    text = raw.replace("\r\n", "\n").replace("\r", "\n")
    blocks = []
    for block in _BLOCK_SPLIT.split(text):
        lines = [line.strip() for line in block.split("\n") if line.strip()]
        if lines:
            blocks.append(lines)
    return blocks


def _is_list_block(lines: list[str]) -> bool:
    return all(_LIST_MARKER.match(line) for line in lines)


def segment_notes(raw: str, min_unit_chars: int = 3) -> list[CitableUnit]:
    """
    Segment raw notes into citable units.

    Args:
        raw: Free-form notes (paragraphs and/or bullet lists).
        min_unit_chars: Minimum length of a source fragment to keep.

    Returns:
        Units with IDs H1..Hn in document order. Empty or
        whitespace-only input yields an empty list.

    Example:
        >>> [u.text for u in segment_notes("- Alpha\\n- Beta\\n\\nA closing line.")]
        ['Alpha', 'Beta', 'A closing line.']
    """
    if not raw or not raw.strip():
        return []

    fragments: list[str] = []
    for lines in _split_blocks(raw):
        if _is_list_block(lines):
            for line in lines:
                if len(line) < min_unit_chars:
                    continue
                text = _LIST_MARKER.sub("", line, count=1).strip()
                if text:
                    fragments.append(text)
        else:
            text = " ".join(lines)
            if len(text) >= min_unit_chars:
                fragments.append(text)

    units = [
        CitableUnit(unit_id=f"H{i}", text=text)
        for i, text in enumerate(fragments, start=1)
    ]
    logger.debug(f"Segmented notes into {len(units)} units")
    return units


def format_units_for_prompt(units: list[CitableUnit]) -> str:
    """Render units as ``[H1] text`` blocks separated by blank lines."""
    return "\n\n".join(f"[{u.unit_id}] {u.text}" for u in units)


def unit_map(units: list[CitableUnit]) -> dict[str, CitableUnit]:
    """Index units by ID."""
    return {u.unit_id: u for u in units}
