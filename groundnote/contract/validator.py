"""
Output Contract Validator
==========================

Enforcement point for everything the generation collaborator returns.

Two-phase check:
    1. Base shape (pydantic): known mode, ≥1 item, non-empty text,
       ≥1 well-formed citation per item. Failure short-circuits.
    2. Mode policy: every rule the mode's policy declares is evaluated
       (word budget, item count, per-item budget, required markers) and
       each failing rule yields one "[path] message" diagnostic. Rules
       are not short-circuited so a repair prompt can address every
       violation at once.

Citation existence is checked separately against the evidence set the
output was generated from; it depends on runtime evidence rather than
static shape and needs a different repair message.

Every function here is pure: validating the same envelope twice gives
identical diagnostics and metrics.

Usage:
    from groundnote.contract.validator import validate_output, validate_citations
    result = validate_output(parsed_json)
    if result.success:
        check = validate_citations(result.envelope, evidence_units)
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import ValidationError

from groundnote.contract.policy import ModePolicy, get_policy
from groundnote.schemas.metrics import FaithfulnessReport, RunMetrics
from groundnote.schemas.notes import CitableUnit
from groundnote.schemas.output import OutputEnvelope
from groundnote.schemas.retrieval import RetrievalResult
from groundnote.schemas.storage import SavedNoteSet
from groundnote.utils import percent, round_half_up, utc_now_iso

logger = logging.getLogger("groundnote.contract.validator")


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validate_output()."""
    success: bool
    envelope: Optional[OutputEnvelope] = None
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class CitationCheck:
    """Outcome of validate_citations()."""
    valid: bool
    missing: list[str] = field(default_factory=list)


# ── Word helpers ───────────────────────────────────────────────────

def count_words(text: str) -> int:
    """Whitespace-tokenised word count."""
    return len(text.split())


def total_words(envelope: OutputEnvelope) -> int:
    return sum(count_words(item.text) for item in envelope.items)


# ── Phase 1: base shape ────────────────────────────────────────────

def _format_pydantic_errors(exc: ValidationError) -> list[str]:
    errors = []
    for err in exc.errors():
        path = ".".join(str(part) for part in err["loc"])
        message = err["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append(f"[{path}] {message}")
    return errors


def check_base_shape(raw: Any) -> tuple[Optional[OutputEnvelope], list[str]]:
    """Parse raw output into an envelope, or return base-shape diagnostics."""
    if raw is None:
        return None, ["[] Response was not valid JSON"]
    try:
        return OutputEnvelope.model_validate(raw), []
    except ValidationError as e:
        return None, _format_pydantic_errors(e)


# ── Phase 2: mode policy ───────────────────────────────────────────

def _rule_word_budget(policy: ModePolicy, envelope: OutputEnvelope) -> Optional[str]:
    if policy.word_limit is None:
        return None
    words = total_words(envelope)
    if words > policy.word_limit:
        return (
            f"[items] {policy.label}: total words must be ≤ {policy.word_limit} "
            f"(got {words})"
        )
    return None


def _rule_item_count(policy: ModePolicy, envelope: OutputEnvelope) -> Optional[str]:
    count = len(envelope.items)
    if policy.min_items <= count <= policy.max_items:
        return None
    return (
        f"[items] {policy.label}: must have {policy.item_range_text()} items "
        f"(got {count})"
    )


def _rule_item_words(policy: ModePolicy, envelope: OutputEnvelope) -> Optional[str]:
    if policy.item_word_limit is None:
        return None
    over = [
        str(i) for i, item in enumerate(envelope.items)
        if count_words(item.text) > policy.item_word_limit
    ]
    if over:
        return (
            f"[items] {policy.label}: each item must be ≤ {policy.item_word_limit} words "
            f"(too long: items {', '.join(over)})"
        )
    return None


def _rule_required_markers(policy: ModePolicy, envelope: OutputEnvelope) -> Optional[str]:
    if not policy.required_markers:
        return None
    blob = " ".join(envelope.texts).lower()
    for marker in policy.required_markers:
        if re.search(rf"\b{re.escape(marker)}\b", blob):
            return None
    return f"[items] {policy.label}: {policy.marker_message}"


POLICY_RULES: tuple[Callable[[ModePolicy, OutputEnvelope], Optional[str]], ...] = (
    _rule_word_budget,
    _rule_item_count,
    _rule_item_words,
    _rule_required_markers,
)


def check_policy(envelope: OutputEnvelope) -> list[str]:
    """Apply every rule of the envelope's mode policy; collect all failures."""
    policy = get_policy(envelope.mode)
    errors = []
    for rule in POLICY_RULES:
        message = rule(policy, envelope)
        if message:
            errors.append(message)
    return errors


def validate_output(raw: Any) -> ValidationResult:
    """
    Validate raw generated output against the output contract.

    Args:
        raw: Parsed JSON (usually a dict), an OutputEnvelope, or None
             when the response could not be parsed.

    Returns:
        ValidationResult. On success `envelope` is the typed output;
        on failure `errors` lists one diagnostic per violated rule.
    """
    envelope, errors = check_base_shape(raw)
    if envelope is None:
        return ValidationResult(success=False, errors=errors)

    errors = check_policy(envelope)
    if errors:
        return ValidationResult(success=False, envelope=envelope, errors=errors)
    return ValidationResult(success=True, envelope=envelope)


# ── Citation existence ─────────────────────────────────────────────

def validate_citations(envelope: OutputEnvelope, units: list[CitableUnit]) -> CitationCheck:
    """
    Check that every citation refers to a unit in the evidence set.

    Returns:
        CitationCheck with missing IDs deduplicated, in first-seen order.
    """
    known = {u.unit_id for u in units}
    missing = [cid for cid in envelope.cited_ids if cid not in known]
    return CitationCheck(valid=not missing, missing=missing)


# ── Metrics ────────────────────────────────────────────────────────

def compute_metrics(
    envelope: OutputEnvelope,
    units: list[CitableUnit],
    timestamp: Optional[str] = None,
) -> RunMetrics:
    """
    Derive a RunMetrics snapshot for a validated envelope.

    Args:
        envelope: Output that passed the base-shape check.
        units: Evidence set the output was generated against.
        timestamp: Override for the snapshot time (defaults to now, UTC).
    """
    policy = get_policy(envelope.mode)
    words = total_words(envelope)
    item_count = len(envelope.items)

    within_total = policy.word_limit is None or words <= policy.word_limit
    within_items = policy.item_word_limit is None or all(
        count_words(item.text) <= policy.item_word_limit for item in envelope.items
    )

    citations = validate_citations(envelope, units)
    evidence_ids = {u.unit_id for u in units}
    cited_in_evidence = evidence_ids.intersection(envelope.cited_ids)

    schema_envelope, _ = check_base_shape(envelope.model_dump(mode="json"))

    return RunMetrics(
        schema_pass=schema_envelope is not None,
        policy_pass=not check_policy(envelope),
        word_count=words,
        word_limit_pass=within_total and within_items,
        citation_coverage=percent(len(cited_in_evidence), len(units)),
        item_count=item_count,
        avg_words_per_item=int(round_half_up(words / item_count)) if item_count else 0,
        valid_citations=citations.valid,
        missing_citations=citations.missing,
        timestamp=timestamp or utc_now_iso(),
    )


# ── JSON Schema export ─────────────────────────────────────────────

_SCHEMAS = {
    "unit": CitableUnit,
    "output": OutputEnvelope,
    "retrieval": RetrievalResult,
    "metrics": RunMetrics,
    "faithfulness": FaithfulnessReport,
    "noteset": SavedNoteSet,
}


def get_json_schema(schema_name: str) -> dict[str, Any]:
    """
    Export the JSON Schema for a GroundNote data contract.

    Args:
        schema_name: One of "unit", "output", "retrieval", "metrics",
                     "faithfulness", "noteset".
    """
    if schema_name not in _SCHEMAS:
        raise ValueError(f"Unknown schema: {schema_name}. Use: {list(_SCHEMAS.keys())}")
    return _SCHEMAS[schema_name].model_json_schema()


def export_all_schemas(output_dir: str | Path) -> list[Path]:
    """Write one ``{name}_schema.json`` file per data contract."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for name in _SCHEMAS:
        path = output_dir / f"{name}_schema.json"
        with open(path, "w", encoding="utf-8") as f:
            json.dump(get_json_schema(name), f, indent=2, ensure_ascii=False)
        logger.info(f"Exported schema: {path}")
        written.append(path)
    return written
