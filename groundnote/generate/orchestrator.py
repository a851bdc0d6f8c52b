"""
Generation Orchestrator
========================

Drives one generation run as an explicit state machine:

    IDLE → RETRIEVING → PROMPTING → GENERATING → VALIDATING
                                                   ├─→ SUCCEEDED
                                                   └─→ REPAIRING → VALIDATING
                                                                    ├─→ SUCCEEDED
                                                                    └─→ FAILED

Every move goes through `_RunContext.advance()`, which checks it against
TRANSITIONS and against MAX_VISITS. REPAIRING may be entered once per
run, so a second failed validation can only lead to FAILED.

Two distinct repair paths exist:
    - malformed-JSON repair: inside GENERATING, one cheap retry when the
      response cannot be parsed at all
    - content repair: the REPAIRING state, driven by the combined
      structural, mode and citation diagnostics

A reply whose envelope names a different mode than the one requested
is a validation failure; if it still differs after repair the run ends FAILED.

So a run makes at most three generation calls.

Error behaviour:
    - bad mode / short notes / nothing citable → InputRejectedError,
      before any external call
    - retrieval errors → logged, full unit set used
    - GenerationError (rate limit, timeout, config) → propagates unchanged
    - validation failure after repair → FAILED outcome (not raised) with
      diagnostics and the last raw output
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from groundnote.config import GroundNoteConfig
from groundnote.contract.validator import (
    CitationCheck,
    ValidationResult,
    compute_metrics,
    validate_citations,
    validate_output,
)
from groundnote.errors import InputRejectedError
from groundnote.generate.client import BaseGenerator, GenerationResult
from groundnote.generate.prompts import (
    MALFORMED_JSON_ERROR,
    build_repair_prompt,
    build_system_prompt,
    build_user_prompt,
)
from groundnote.ingest.segmenter import format_units_for_prompt, segment_notes
from groundnote.retrieve.evidence import EvidenceRetriever
from groundnote.schemas.metrics import RunMetrics
from groundnote.schemas.notes import CitableUnit
from groundnote.schemas.output import Mode, OutputEnvelope, Strictness
from groundnote.schemas.retrieval import RetrievalResult

logger = logging.getLogger("groundnote.generate.orchestrator")


class RunState(str, Enum):
    IDLE = "idle"
    RETRIEVING = "retrieving"
    PROMPTING = "prompting"
    GENERATING = "generating"
    VALIDATING = "validating"
    REPAIRING = "repairing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


TRANSITIONS: dict[RunState, frozenset[RunState]] = {
    RunState.IDLE: frozenset({RunState.RETRIEVING}),
    RunState.RETRIEVING: frozenset({RunState.PROMPTING}),
    RunState.PROMPTING: frozenset({RunState.GENERATING}),
    RunState.GENERATING: frozenset({RunState.VALIDATING}),
    RunState.VALIDATING: frozenset({RunState.SUCCEEDED, RunState.REPAIRING, RunState.FAILED}),
    RunState.REPAIRING: frozenset({RunState.VALIDATING}),
    RunState.SUCCEEDED: frozenset(),
    RunState.FAILED: frozenset(),
}

MAX_VISITS: dict[RunState, int] = {RunState.REPAIRING: 1}

TERMINAL_STATES = frozenset({RunState.SUCCEEDED, RunState.FAILED})


def missing_citation_message(unit_id: str) -> str:
    return f"Citation {unit_id} does not exist in highlights"


def mode_mismatch_message(expected: Mode, got: Mode) -> str:
    return f"[mode] expected '{expected.value}' (got '{got.value}')"


@dataclass
class GenerationOutcome:
    """
    Terminal result of a generation run.

    On success `envelope` and `metrics` are set. On failure `diagnostics`
    and `raw_output` describe the last attempt.
    """
    status: RunState
    mode: Mode
    envelope: Optional[OutputEnvelope]
    metrics: Optional[RunMetrics]
    evidence_set: list[CitableUnit]
    all_units: list[CitableUnit]
    retrieval: Optional[RetrievalResult] = None
    diagnostics: list[str] = field(default_factory=list)
    raw_output: str = ""
    attempts: int = 0
    repaired: bool = False
    state_trace: list[RunState] = field(default_factory=list)
    timings: dict[str, float] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == RunState.SUCCEEDED

    @property
    def warnings(self) -> list[str]:
        return self.envelope.warnings if self.envelope else []


class _RunContext:
    """Mutable bookkeeping for a single run; never shared across runs."""

    def __init__(self):
        self.state = RunState.IDLE
        self.trace: list[RunState] = [RunState.IDLE]
        self.visits: dict[RunState, int] = {}

    def can_enter(self, target: RunState) -> bool:
        if target not in TRANSITIONS[self.state]:
            return False
        limit = MAX_VISITS.get(target)
        return limit is None or self.visits.get(target, 0) < limit

    def advance(self, target: RunState) -> None:
        if not self.can_enter(target):
            raise RuntimeError(f"Illegal run transition: {self.state.value} → {target.value}")
        self.state = target
        self.visits[target] = self.visits.get(target, 0) + 1
        self.trace.append(target)


class GenerationOrchestrator:
    """
    Runs notes → evidence → prompt → generation → validation (→ one repair).

    Usage:
        orchestrator = GenerationOrchestrator(generator, retriever, config)
        outcome = orchestrator.run(notes_text, "interview")
        if outcome.succeeded:
            print(outcome.envelope.texts, outcome.metrics.citation_coverage)

    Args:
        generator: Text-generation collaborator.
        retriever: Evidence retriever; None disables narrowing.
        config: GroundNote configuration (defaults when omitted).
    """

    def __init__(
        self,
        generator: BaseGenerator,
        retriever: Optional[EvidenceRetriever] = None,
        config: Optional[GroundNoteConfig] = None,
    ):
        self.generator = generator
        self.retriever = retriever
        self.config = config or GroundNoteConfig()

    # ── Entry guards ───────────────────────────────────────────────

    def _check_input(self, notes_text: str, mode: Mode | str) -> tuple[Mode, list[CitableUnit]]:
        try:
            mode = Mode(mode)
        except ValueError:
            raise InputRejectedError(
                f"Invalid mode. Choose one of: {', '.join(Mode.values())}"
            ) from None

        min_chars = self.config.segment.min_notes_chars
        if not notes_text or len(notes_text.strip()) < min_chars:
            raise InputRejectedError(f"Please provide at least {min_chars} characters of notes.")

        units = segment_notes(notes_text, min_unit_chars=self.config.segment.min_unit_chars)
        if not units:
            raise InputRejectedError("Could not extract any highlights from your notes.")
        return mode, units

    # ── Steps ──────────────────────────────────────────────────────

    def _retrieve(
        self, units: list[CitableUnit], mode: Mode
    ) -> tuple[list[CitableUnit], Optional[RetrievalResult]]:
        if self.retriever is None or not self.config.retrieval.enabled:
            return units, None
        try:
            retrieval = self.retriever.retrieve(units, mode)
        except Exception as e:
            logger.warning(f"Retrieval failed ({e}); using all {len(units)} units")
            return units, None
        if not retrieval.evidence_set:
            logger.warning("Retrieval kept no units; using the full unit set")
            return units, retrieval
        return retrieval.evidence_set, retrieval

    @staticmethod
    def _check(
        result: GenerationResult, evidence: list[CitableUnit], mode: Mode
    ) -> tuple[ValidationResult, CitationCheck, list[str]]:
        validation = validate_output(result.parsed)
        envelope = validation.envelope
        if envelope is not None and envelope.mode != mode:
            validation = ValidationResult(
                success=False,
                envelope=envelope,
                errors=[mode_mismatch_message(mode, envelope.mode)] + validation.errors,
            )
        if validation.envelope is not None:
            citations = validate_citations(validation.envelope, evidence)
        else:
            citations = CitationCheck(valid=False)
        diagnostics = list(validation.errors)
        diagnostics.extend(missing_citation_message(cid) for cid in citations.missing)
        return validation, citations, diagnostics

    # ── Run ────────────────────────────────────────────────────────

    def run(
        self,
        notes_text: str,
        mode: Mode | str,
        strictness: Optional[Strictness | str] = None,
    ) -> GenerationOutcome:
        """
        Execute one generation run.

        Args:
            notes_text: Raw notes.
            mode: Task mode (enum or wire value).
            strictness: "strict" or "balanced"; defaults to config.

        Returns:
            GenerationOutcome with status SUCCEEDED or FAILED.

        Raises:
            InputRejectedError: Unknown mode, too-short notes, no units.
            GenerationError: The generation collaborator failed.
        """
        mode, units = self._check_input(notes_text, mode)
        strictness = Strictness(strictness or self.config.generation.default_strictness)
        temperature = self.config.generation.temperature_for(mode.value)
        ctx = _RunContext()
        timings: dict[str, float] = {}
        total_start = time.time()

        # ── Retrieve ───────────────────────────────────────────────
        ctx.advance(RunState.RETRIEVING)
        t0 = time.time()
        evidence, retrieval = self._retrieve(units, mode)
        timings["retrieve_ms"] = (time.time() - t0) * 1000

        # ── Prompt ─────────────────────────────────────────────────
        ctx.advance(RunState.PROMPTING)
        units_block = format_units_for_prompt(evidence)
        system_prompt = build_system_prompt(strictness)
        user_prompt = build_user_prompt(mode, units_block)

        # ── Generate ───────────────────────────────────────────────
        ctx.advance(RunState.GENERATING)
        t0 = time.time()
        result = self.generator.generate_json(system_prompt, user_prompt, temperature)
        attempts = 1
        if result.parsed is None:
            logger.warning("Unparseable response; issuing malformed-JSON repair")
            repair_prompt = build_repair_prompt(result.raw, [MALFORMED_JSON_ERROR], units_block)
            result = self.generator.generate_json(system_prompt, repair_prompt, temperature)
            attempts += 1
        timings["generate_ms"] = (time.time() - t0) * 1000

        # ── Validate (→ repair once) ───────────────────────────────
        ctx.advance(RunState.VALIDATING)
        validation, citations, diagnostics = self._check(result, evidence, mode)
        repaired = False

        while ctx.state not in TERMINAL_STATES:
            if not diagnostics:
                ctx.advance(RunState.SUCCEEDED)
            elif ctx.can_enter(RunState.REPAIRING):
                ctx.advance(RunState.REPAIRING)
                logger.warning(f"Output failed validation ({len(diagnostics)} issues); repairing")
                t0 = time.time()
                repair_prompt = build_repair_prompt(result.raw, diagnostics, units_block)
                result = self.generator.generate_json(system_prompt, repair_prompt, temperature)
                attempts += 1
                repaired = True
                timings["repair_ms"] = (time.time() - t0) * 1000

                ctx.advance(RunState.VALIDATING)
                validation, citations, diagnostics = self._check(result, evidence, mode)
                if validation.success and not citations.valid:
                    if self.config.generation.fail_on_missing_citations:
                        ctx.advance(RunState.FAILED)
                    else:
                        diagnostics = []
            else:
                ctx.advance(RunState.FAILED)

        timings["total_ms"] = (time.time() - total_start) * 1000
        outcome = GenerationOutcome(
            status=ctx.state,
            mode=mode,
            envelope=None,
            metrics=None,
            evidence_set=evidence,
            all_units=units,
            retrieval=retrieval,
            diagnostics=diagnostics,
            raw_output=result.raw,
            attempts=attempts,
            repaired=repaired,
            state_trace=list(ctx.trace),
            timings=timings,
        )

        if ctx.state == RunState.FAILED:
            logger.warning(
                f"Run failed after {attempts} attempts: {'; '.join(diagnostics[:3])}"
            )
            return outcome

        envelope = validation.envelope
        if not citations.valid:
            envelope = envelope.model_copy(update={
                "warnings": envelope.warnings + [
                    f"Unresolved citations kept after repair: {', '.join(citations.missing)}"
                ]
            })
        outcome.envelope = envelope
        outcome.metrics = compute_metrics(envelope, evidence)
        logger.info(
            f"Run succeeded: mode={mode.value} items={outcome.metrics.item_count} "
            f"coverage={outcome.metrics.citation_coverage}% attempts={attempts} "
            f"| Total: {timings['total_ms']:.0f}ms"
        )
        return outcome
