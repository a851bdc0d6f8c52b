"""
Embedding Provider Tests
=========================

Tests the three embedding strategies and their shared contract:
one vector per input, input order preserved, never raising.

The remote provider is exercised against a monkeypatched
`requests.post`; no network access happens.
"""

from __future__ import annotations

import threading

import numpy as np
import pytest
import requests

from groundnote.config import EmbeddingConfig, GroundNoteConfig
from groundnote.ingest import embedder as embedder_mod
from groundnote.ingest.embedder import (
    HashEmbedder,
    LocalEmbedder,
    RemoteEmbedder,
    get_embedder,
    mean_pool,
)
from groundnote.retrieve.similarity import cosine_similarity


class FakeResponse:
    def __init__(self, payload=None, status_code=200, text=""):
        self._payload = payload
        self.status_code = status_code
        self.text = text

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


# ── Hash fallback ───────────────────────────────────────────────

class TestHashEmbedder:

    def test_dimension_and_norm(self):
        vec = HashEmbedder(dim=64).embed_one("Habits compound over time")
        assert vec.shape == (64,)
        assert np.linalg.norm(vec) == pytest.approx(1.0)

    def test_deterministic(self):
        a = HashEmbedder().embed(["same text here"])[0]
        b = HashEmbedder().embed(["same text here"])[0]
        assert np.array_equal(a, b)

    def test_case_and_punctuation_ignored(self):
        emb = HashEmbedder()
        assert np.array_equal(emb.embed_one("Deep Work!"), emb.embed_one("deep work"))

    def test_empty_text_is_zero_vector(self):
        vec = HashEmbedder().embed_one("!!! ...")
        assert not vec.any()

    def test_token_hash_matches_rolling_formula(self):
        # "ab": h = (0*31 + 97) = 97; h = 97*31 + 98 = 3105
        assert HashEmbedder._token_hash("ab") == 3105

    def test_shared_words_are_similar(self):
        emb = HashEmbedder()
        a, b, c = emb.embed([
            "environment design beats willpower",
            "willpower loses to environment design",
            "quarterly revenue grew strongly",
        ])
        assert cosine_similarity(a, b) > cosine_similarity(a, c)

    def test_order_preserved(self):
        emb = HashEmbedder()
        texts = ["alpha", "beta", "gamma"]
        vectors = emb.embed(texts)
        for text, vec in zip(texts, vectors):
            assert np.array_equal(vec, emb.embed_one(text))


# ── Remote provider ─────────────────────────────────────────────

class TestRemoteEmbedder:

    def make(self, **kwargs) -> RemoteEmbedder:
        defaults = dict(api_url="https://example.invalid/embed", api_token="hf_test", batch_size=2)
        defaults.update(kwargs)
        return RemoteEmbedder(**defaults)

    def test_no_token_uses_fallback_without_request(self, monkeypatch):
        def boom(*args, **kwargs):
            raise AssertionError("should not be called")

        monkeypatch.setattr(embedder_mod.requests, "post", boom)
        emb = self.make(api_token=None)
        vectors = emb.embed(["one", "two"])
        assert np.array_equal(vectors[0], HashEmbedder().embed_one("one"))

    def test_sentence_vectors_returned(self, monkeypatch):
        def fake_post(url, headers, json, timeout):
            assert headers["Authorization"] == "Bearer hf_test"
            assert json["options"] == {"wait_for_model": True}
            return FakeResponse([[1.0, 0.0, 0.0] for _ in json["inputs"]])

        monkeypatch.setattr(embedder_mod.requests, "post", fake_post)
        vectors = self.make().embed(["a", "b"])
        assert [v.tolist() for v in vectors] == [[1.0, 0.0, 0.0], [1.0, 0.0, 0.0]]

    def test_token_vectors_mean_pooled(self, monkeypatch):
        token_matrix = [[1.0, 3.0], [3.0, 5.0]]
        monkeypatch.setattr(
            embedder_mod.requests, "post",
            lambda url, headers, json, timeout: FakeResponse([token_matrix for _ in json["inputs"]]),
        )
        vectors = self.make().embed(["a"])
        assert vectors[0].tolist() == [2.0, 4.0]

    def test_http_error_falls_back(self, monkeypatch):
        monkeypatch.setattr(
            embedder_mod.requests, "post",
            lambda *a, **k: FakeResponse(status_code=503, text="loading"),
        )
        vectors = self.make().embed(["fallback text"])
        assert np.array_equal(vectors[0], HashEmbedder().embed_one("fallback text"))

    def test_connection_error_falls_back(self, monkeypatch):
        def fail(*args, **kwargs):
            raise requests.ConnectionError("offline")

        monkeypatch.setattr(embedder_mod.requests, "post", fail)
        vectors = self.make().embed(["x y", "z w"])
        assert len(vectors) == 2
        assert np.array_equal(vectors[1], HashEmbedder().embed_one("z w"))

    def test_timeout_falls_back(self, monkeypatch):
        def slow(*args, **kwargs):
            raise requests.Timeout("too slow")

        monkeypatch.setattr(embedder_mod.requests, "post", slow)
        assert len(self.make().embed(["a"])) == 1

    def test_non_json_falls_back(self, monkeypatch):
        monkeypatch.setattr(
            embedder_mod.requests, "post",
            lambda *a, **k: FakeResponse(ValueError("not json")),
        )
        vectors = self.make().embed(["text"])
        assert np.array_equal(vectors[0], HashEmbedder().embed_one("text"))

    def test_length_mismatch_falls_back(self, monkeypatch):
        monkeypatch.setattr(
            embedder_mod.requests, "post",
            lambda *a, **k: FakeResponse([[1.0, 2.0]]),
        )
        vectors = self.make().embed(["a", "b"])
        assert np.array_equal(vectors[1], HashEmbedder().embed_one("b"))

    def test_bad_item_falls_back_individually(self, monkeypatch):
        monkeypatch.setattr(
            embedder_mod.requests, "post",
            lambda *a, **k: FakeResponse([[0.5, 0.5], "garbage"]),
        )
        vectors = self.make().embed(["good", "bad"])
        assert vectors[0].tolist() == [0.5, 0.5]
        assert np.array_equal(vectors[1], HashEmbedder().embed_one("bad"))

    def test_batches_reassembled_in_order(self, monkeypatch):
        """Batches may finish in any order; output must follow input order."""
        lock = threading.Lock()
        seen_batches = []

        def fake_post(url, headers, json, timeout):
            with lock:
                seen_batches.append(list(json["inputs"]))
            return FakeResponse([[float(t)] for t in json["inputs"]])

        monkeypatch.setattr(embedder_mod.requests, "post", fake_post)
        texts = [str(i) for i in range(7)]
        vectors = self.make(batch_size=2, max_workers=3).embed(texts)
        assert [v.tolist() for v in vectors] == [[float(i)] for i in range(7)]
        assert sorted(len(b) for b in seen_batches) == [1, 2, 2, 2]

    def test_empty_input(self):
        assert self.make().embed([]) == []


# ── Local provider ──────────────────────────────────────────────

class TestLocalEmbedder:

    def test_falls_back_when_model_unavailable(self, monkeypatch):
        emb = LocalEmbedder()
        monkeypatch.setattr(emb, "_load_model", lambda: False)
        vectors = emb.embed(["offline text"])
        assert np.array_equal(vectors[0], HashEmbedder().embed_one("offline text"))

    def test_uses_loaded_model(self):
        class FakeModel:
            def encode(self, texts, batch_size, show_progress_bar):
                return [[1.0, 2.0] for _ in texts]

        emb = LocalEmbedder()
        emb._model = FakeModel()
        vectors = emb.embed(["a", "b"])
        assert [v.tolist() for v in vectors] == [[1.0, 2.0], [1.0, 2.0]]


# ── Helpers & factory ───────────────────────────────────────────

def test_mean_pool():
    assert mean_pool(np.array([[0.0, 2.0], [2.0, 4.0]])).tolist() == [1.0, 3.0]


class TestGetEmbedder:

    def make_config(self, provider: str, token=None) -> GroundNoteConfig:
        return GroundNoteConfig(
            _env_file=None,
            hf_api_token=token,
            embedding=EmbeddingConfig(provider=provider, hash_dim=32),
        )

    def test_auto_without_token_is_hash(self):
        emb = get_embedder(self.make_config("auto"))
        assert isinstance(emb, HashEmbedder)
        assert emb.dim == 32

    def test_auto_with_token_is_remote(self):
        emb = get_embedder(self.make_config("auto", token="hf_real"))
        assert isinstance(emb, RemoteEmbedder)
        assert emb.fallback.dim == 32

    def test_placeholder_token_counts_as_missing(self):
        emb = get_embedder(self.make_config("auto", token="your-hf-token-here"))
        assert isinstance(emb, HashEmbedder)

    def test_local(self):
        assert isinstance(get_embedder(self.make_config("local")), LocalEmbedder)

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown embedding provider"):
            get_embedder(self.make_config("quantum"))
