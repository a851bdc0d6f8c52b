"""
Note-Set Repository
====================

Local persistence for note sets and their append-only run history.

Lifecycle:
    repo = NoteSetRepository.open("./data/notesets.json")   # or open(None)
    note_set = repo.save_note_set("Deep Work", raw_text, units)
    repo.append_run(note_set.note_set_id, mode, items, warnings, metrics)
    stats = repo.aggregate_stats()

`open(None)` gives an in-memory store (tests, one-off CLI runs). With a
path, every mutation rewrites the JSON file. There is no locking: one
process owns a store file at a time.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from groundnote.schemas.metrics import RunMetrics
from groundnote.schemas.notes import CitableUnit
from groundnote.schemas.output import Mode, OutputItem
from groundnote.schemas.storage import (
    AggregateStats,
    FailureReason,
    ModeStats,
    SavedNoteSet,
    SavedRun,
)
from groundnote.utils import generate_id, load_json, percent, round_half_up, save_json, utc_now_iso

logger = logging.getLogger("groundnote.storage.repository")

RECENT_RUNS_LIMIT = 20
LOW_COVERAGE_THRESHOLD = 30

# Failure reason label → predicate over a run's metrics
FAILURE_CHECKS: dict[str, Callable[[RunMetrics], bool]] = {
    "Schema validation failed": lambda m: not m.schema_pass,
    "Mode policy violated": lambda m: not m.policy_pass,
    "Word limit exceeded": lambda m: not m.word_limit_pass,
    "Invalid citations": lambda m: not m.valid_citations,
    f"Low citation coverage (<{LOW_COVERAGE_THRESHOLD}%)":
        lambda m: m.citation_coverage < LOW_COVERAGE_THRESHOLD,
}


def run_passed(metrics: RunMetrics) -> bool:
    return metrics.schema_pass and metrics.policy_pass


def _timestamp_key(run: SavedRun) -> datetime:
    return datetime.fromisoformat(run.timestamp)


class NoteSetRepository:
    """
    Note sets kept newest-first, each with an append-only list of runs.

    Args:
        path: JSON file backing the store; None keeps everything in memory.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else None
        self._note_sets: list[SavedNoteSet] = []

    @classmethod
    def open(cls, path: Optional[str | Path] = None) -> "NoteSetRepository":
        """Open a store, loading existing records when the file exists."""
        repo = cls(path)
        if repo.path is not None and repo.path.exists():
            repo._note_sets = [SavedNoteSet.model_validate(d) for d in load_json(repo.path)]
            logger.debug(f"Loaded {len(repo._note_sets)} note sets from {repo.path}")
        return repo

    def _flush(self) -> None:
        if self.path is None:
            return
        save_json([ns.model_dump(mode="json") for ns in self._note_sets], self.path)

    def _find(self, note_set_id: str) -> Optional[SavedNoteSet]:
        for note_set in self._note_sets:
            if note_set.note_set_id == note_set_id:
                return note_set
        return None

    # ── Note sets ──────────────────────────────────────────────────

    def save_note_set(self, title: str, raw_text: str, units: list[CitableUnit]) -> SavedNoteSet:
        now = utc_now_iso()
        note_set = SavedNoteSet(
            note_set_id=generate_id(),
            title=title,
            raw_text=raw_text,
            units=list(units),
            created_at=now,
            updated_at=now,
        )
        self._note_sets.insert(0, note_set)
        self._flush()
        logger.info(f"Saved note set '{title}' ({len(units)} units) as {note_set.note_set_id}")
        return note_set

    def get_note_set(self, note_set_id: str) -> Optional[SavedNoteSet]:
        return self._find(note_set_id)

    def list_note_sets(self) -> list[SavedNoteSet]:
        """All note sets, newest first."""
        return list(self._note_sets)

    def delete_note_set(self, note_set_id: str) -> bool:
        """Delete a note set; returns False when it did not exist."""
        before = len(self._note_sets)
        self._note_sets = [ns for ns in self._note_sets if ns.note_set_id != note_set_id]
        if len(self._note_sets) == before:
            return False
        self._flush()
        return True

    # ── Runs ───────────────────────────────────────────────────────

    def append_run(
        self,
        note_set_id: str,
        mode: Mode | str,
        items: list[OutputItem],
        warnings: list[str],
        metrics: RunMetrics,
        config_hash: str = "",
    ) -> SavedRun:
        """
        Append one run record to a note set.

        Raises:
            KeyError: The note set does not exist.
        """
        note_set = self._find(note_set_id)
        if note_set is None:
            raise KeyError(f"Note set not found: {note_set_id}")

        run = SavedRun(
            run_id=generate_id(),
            mode=Mode(mode),
            items=list(items),
            warnings=list(warnings),
            metrics=metrics,
            config_hash=config_hash,
            timestamp=utc_now_iso(),
        )
        note_set.runs.append(run)
        note_set.updated_at = run.timestamp
        self._flush()
        return run

    # ── Aggregates ─────────────────────────────────────────────────

    def aggregate_stats(self) -> AggregateStats:
        """Pass rates, averages, per-mode counts and failure reasons across all runs."""
        runs = [run for ns in self._note_sets for run in ns.runs]
        total = len(runs)
        if total == 0:
            return AggregateStats(total_note_sets=len(self._note_sets))

        by_mode = {m.value: ModeStats() for m in Mode}
        failures: Counter = Counter()
        for run in runs:
            stats = by_mode[Mode(run.mode).value]
            stats.count += 1
            if run_passed(run.metrics):
                stats.pass_count += 1
            for reason, check in FAILURE_CHECKS.items():
                if check(run.metrics):
                    failures[reason] += 1

        recent = sorted(runs, key=_timestamp_key, reverse=True)[:RECENT_RUNS_LIMIT]

        return AggregateStats(
            total_note_sets=len(self._note_sets),
            total_runs=total,
            pass_rate=percent(sum(1 for r in runs if run_passed(r.metrics)), total),
            avg_coverage=int(round_half_up(sum(r.metrics.citation_coverage for r in runs) / total)),
            avg_word_count=int(round_half_up(sum(r.metrics.word_count for r in runs) / total)),
            word_limit_pass_rate=percent(sum(1 for r in runs if r.metrics.word_limit_pass), total),
            runs_by_mode=by_mode,
            recent_runs=recent,
            failure_reasons=[
                FailureReason(reason=reason, count=count)
                for reason, count in failures.most_common()
            ],
        )
