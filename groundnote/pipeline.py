"""
GroundNote Pipeline
====================

Single entry point wiring the components together:

    Notes → Segment → Retrieve → Prompt → Generate → Validate (→ Repair) → Metrics
                                                                   ↘ Store run
    Items + Units → Faithfulness report

Components are built lazily from config and can be injected instead
(tests pass a fake generator and an in-memory repository).

Usage:
    from groundnote.pipeline import NotesPipeline

    pipeline = NotesPipeline.from_config()
    note_set = pipeline.save_note_set("Deep Work", notes_text)
    outcome = pipeline.summarize(notes_text, "interview", note_set_id=note_set.note_set_id)
    report = pipeline.evaluate(outcome.envelope.items, outcome.evidence_set)
"""

from __future__ import annotations

import logging
from typing import Optional

from groundnote.config import GroundNoteConfig, get_config
from groundnote.evaluate.faithfulness import FaithfulnessEvaluator
from groundnote.generate.client import BaseGenerator, GroqGenerator
from groundnote.generate.orchestrator import GenerationOrchestrator, GenerationOutcome
from groundnote.ingest.embedder import BaseEmbedder, get_embedder
from groundnote.ingest.segmenter import segment_notes
from groundnote.retrieve.evidence import EvidenceRetriever
from groundnote.schemas.metrics import FaithfulnessReport
from groundnote.schemas.notes import CitableUnit
from groundnote.schemas.output import Mode, OutputItem, Strictness
from groundnote.schemas.retrieval import RetrievalResult
from groundnote.schemas.storage import AggregateStats, SavedNoteSet
from groundnote.storage.repository import NoteSetRepository

logger = logging.getLogger("groundnote.pipeline")


class NotesPipeline:
    """
    Facade over segmentation, retrieval, generation, evaluation and storage.

    Args:
        config: GroundNote configuration (env / .env when omitted).
        generator: Text-generation collaborator (Groq when omitted).
        embedder: Embedding strategy (from config when omitted).
        repository: Note-set store (opened at config.storage.store_path
                    when omitted).
    """

    def __init__(
        self,
        config: Optional[GroundNoteConfig] = None,
        generator: Optional[BaseGenerator] = None,
        embedder: Optional[BaseEmbedder] = None,
        repository: Optional[NoteSetRepository] = None,
    ):
        self.config = config or get_config()
        self._generator = generator
        self._embedder = embedder
        self._repository = repository
        self._retriever: Optional[EvidenceRetriever] = None
        self._orchestrator: Optional[GenerationOrchestrator] = None

    @classmethod
    def from_config(cls, config_path: Optional[str] = None) -> "NotesPipeline":
        """Create pipeline from config file or environment."""
        return cls(get_config(config_path))

    # ── Lazy components ────────────────────────────────────────────

    @property
    def embedder(self) -> BaseEmbedder:
        if self._embedder is None:
            self._embedder = get_embedder(self.config)
            logger.info(f"Embedding provider: {self._embedder.name}")
        return self._embedder

    @property
    def generator(self) -> BaseGenerator:
        if self._generator is None:
            self._generator = GroqGenerator.from_config(self.config)
        return self._generator

    @property
    def repository(self) -> NoteSetRepository:
        if self._repository is None:
            self.config.ensure_dirs()
            self._repository = NoteSetRepository.open(self.config.storage.store_path)
        return self._repository

    @property
    def retriever(self) -> EvidenceRetriever:
        if self._retriever is None:
            self._retriever = EvidenceRetriever.from_config(self.config, self.embedder)
        return self._retriever

    @property
    def orchestrator(self) -> GenerationOrchestrator:
        if self._orchestrator is None:
            self._orchestrator = GenerationOrchestrator(
                generator=self.generator,
                retriever=self.retriever,
                config=self.config,
            )
        return self._orchestrator

    # ── Operations ─────────────────────────────────────────────────

    def segment(self, notes_text: str) -> list[CitableUnit]:
        return segment_notes(notes_text, min_unit_chars=self.config.segment.min_unit_chars)

    def retrieve(self, notes_text: str, mode: Mode | str) -> RetrievalResult:
        """Show which units a generation run for `mode` would see."""
        return self.retriever.retrieve(self.segment(notes_text), Mode(mode))

    def summarize(
        self,
        notes_text: str,
        mode: Mode | str,
        strictness: Optional[Strictness | str] = None,
        note_set_id: Optional[str] = None,
    ) -> GenerationOutcome:
        """
        Run generation; successful runs are appended to `note_set_id`.

        Raises:
            InputRejectedError, GenerationError: see GenerationOrchestrator.run.
            KeyError: `note_set_id` does not exist.
        """
        if note_set_id and self.repository.get_note_set(note_set_id) is None:
            raise KeyError(f"Note set not found: {note_set_id}")

        outcome = self.orchestrator.run(notes_text, mode, strictness=strictness)
        if note_set_id and outcome.succeeded:
            run = self.repository.append_run(
                note_set_id,
                mode=outcome.mode,
                items=outcome.envelope.items,
                warnings=outcome.envelope.warnings,
                metrics=outcome.metrics,
                config_hash=self.config.config_hash(),
            )
            logger.info(f"Stored run {run.run_id} on note set {note_set_id}")
        return outcome

    def evaluate(self, items: list[OutputItem], units: list[CitableUnit]) -> FaithfulnessReport:
        evaluator = FaithfulnessEvaluator.from_config(self.config, self.embedder)
        return evaluator.evaluate(items, units)

    def save_note_set(self, title: str, notes_text: str) -> SavedNoteSet:
        return self.repository.save_note_set(title, notes_text, self.segment(notes_text))

    def stats(self) -> AggregateStats:
        return self.repository.aggregate_stats()
