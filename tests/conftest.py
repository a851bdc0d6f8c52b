"""
GroundNote Test Configuration
==============================

Shared fixtures, factories, and helpers for the entire test suite.

No test touches the network: generation is replaced by FakeGenerator
(scripted responses) and embeddings use the hash provider.
"""

from __future__ import annotations

import json
from typing import Any, Union

import pytest

from groundnote.config import EmbeddingConfig, GroundNoteConfig, StorageConfig
from groundnote.generate.client import BaseGenerator
from groundnote.ingest.embedder import HashEmbedder
from groundnote.schemas.metrics import RunMetrics
from groundnote.schemas.notes import CitableUnit
from groundnote.schemas.output import OutputEnvelope


# ── Markers ─────────────────────────────────────────────────────

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: fast unit tests")
    config.addinivalue_line("markers", "integration: multi-component tests")


# ── Fakes ───────────────────────────────────────────────────────

class FakeGenerator(BaseGenerator):
    """
    Scripted generation collaborator.

    Each call pops the next response. A dict is serialised to JSON, a
    string is returned verbatim, an exception instance is raised.
    Every call is recorded in `calls` as (system, user, temperature).
    """

    model_name = "fake"

    def __init__(self, responses: list[Union[dict, str, Exception]]):
        self.responses = list(responses)
        self.calls: list[tuple[str, str, float]] = []

    def generate(self, system_prompt: str, user_prompt: str, temperature: float) -> str:
        self.calls.append((system_prompt, user_prompt, temperature))
        if not self.responses:
            raise AssertionError("FakeGenerator ran out of scripted responses")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, dict):
            return json.dumps(response)
        return response


class CountingEmbedder(HashEmbedder):
    """Hash embedder that records every batch it is asked to embed."""

    def __init__(self, dim: int = 128):
        super().__init__(dim=dim)
        self.batches: list[list[str]] = []

    def embed(self, texts):
        self.batches.append(list(texts))
        return super().embed(texts)


# ── Fixtures ────────────────────────────────────────────────────

@pytest.fixture
def config(tmp_path) -> GroundNoteConfig:
    """Offline test config: hash embeddings, dummy key, temp store."""
    return GroundNoteConfig(
        _env_file=None,
        groq_api_key="gsk-test-key-for-testing",
        hf_api_token=None,
        embedding=EmbeddingConfig(provider="hash"),
        storage=StorageConfig(store_path=tmp_path / "notesets.json"),
    )


@pytest.fixture
def sample_notes() -> str:
    """Eight paragraphs of notes, enough to trigger retrieval filtering."""
    return "\n\n".join([
        "Deep work is professional activity performed in distraction-free concentration.",
        "Shallow work such as email and meetings is easy to replicate and adds little value.",
        "Attention residue lingers after switching tasks and lowers performance on the next one.",
        "Time blocking gives every minute of the workday a job instead of reacting to requests.",
        "A shutdown ritual at the end of the day lets the mind recover for the next session.",
        "Focus is a skill that must be trained, like a muscle that weakens without use.",
        "Quitting social media frees hours that can be spent on demanding creative work.",
        "Embracing boredom trains the brain to resist the urge for constant novelty.",
    ])


@pytest.fixture
def sample_units() -> list[CitableUnit]:
    return [make_unit(i, f"Highlight number {i} about focused work and habits.") for i in range(1, 9)]


@pytest.fixture
def hash_embedder() -> HashEmbedder:
    return HashEmbedder(dim=128)


# ── Factories ───────────────────────────────────────────────────

def make_unit(number: int = 1, text: str = "Default highlight text.") -> CitableUnit:
    """Factory for creating test citable units."""
    return CitableUnit(unit_id=f"H{number}", text=text)


def words(n: int, stem: str = "word") -> str:
    """A sentence of exactly n whitespace-separated words."""
    return " ".join(f"{stem}{i}" for i in range(n))


def make_item(
    text: str = "Focused work compounds over time.",
    citations: list[str] | None = None,
    support: str | None = "direct",
) -> dict[str, Any]:
    """Factory for raw (unvalidated) output items."""
    item: dict[str, Any] = {"text": text, "citations": citations if citations is not None else ["H1"]}
    if support is not None:
        item["support"] = support
    return item


def make_envelope(
    mode: str = "oneMinute",
    n_items: int = 4,
    words_per_item: int = 10,
    citations: list[list[str]] | None = None,
    texts: list[str] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    """
    Factory for raw output envelopes, as a generator would return them.

    By default item i cites H{i+1}.
    """
    texts = texts or [words(words_per_item, stem=f"w{i}_") for i in range(n_items)]
    citations = citations or [[f"H{i + 1}"] for i in range(len(texts))]
    return {
        "mode": mode,
        "items": [make_item(t, c) for t, c in zip(texts, citations)],
        "warnings": warnings if warnings is not None else [],
    }


def make_metrics(**overrides) -> RunMetrics:
    """Factory for run metrics; defaults describe a clean run."""
    data = {
        "schema_pass": True,
        "policy_pass": True,
        "word_count": 80,
        "word_limit_pass": True,
        "citation_coverage": 50,
        "item_count": 4,
        "avg_words_per_item": 20,
        "valid_citations": True,
        "missing_citations": [],
        "timestamp": "2026-02-10T14:30:22+00:00",
    }
    data.update(overrides)
    return RunMetrics(**data)


def envelope_model(**kwargs) -> OutputEnvelope:
    return OutputEnvelope.model_validate(make_envelope(**kwargs))
