"""
Embedding Providers
====================

Converts text into fixed-dimension vectors for retrieval and
faithfulness scoring.

Three Strategies (selected by `get_embedder(config)`):
    - HashEmbedder:   deterministic hashed bag-of-words, no network
    - RemoteEmbedder: Hugging Face inference feature-extraction API
    - LocalEmbedder:  sentence-transformers model on this machine

Contract shared by all strategies:
    embed(texts) returns one vector per input, in input order, and never
    raises. Whenever a remote or local backend fails (HTTP error,
    timeout, missing token, bad payload, missing package) the affected
    texts fall back to the hash vector, so offline runs stay
    reproducible and have the same shape as production runs.

Data Flow:
    [unit texts + queries] → Embedder → list[np.ndarray] → cosine_similarity
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import numpy as np
import requests

from groundnote.config import GroundNoteConfig

logger = logging.getLogger("groundnote.ingest.embedder")

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")


class BaseEmbedder(ABC):
    """Abstract embedding strategy."""

    name: str = "base"

    @abstractmethod
    def embed(self, texts: list[str]) -> list[np.ndarray]:
        """
        Embed texts.

        Args:
            texts: Strings to embed.

        Returns:
            One 1-D float vector per input, same order as `texts`.
        """
        ...


# ── Deterministic fallback ─────────────────────────────────────────

class HashEmbedder(BaseEmbedder):
    """
    Hashed bag-of-words vectors.

    Each lowercase alphanumeric token is hashed with a 31-multiplier
    rolling hash (kept to 31 bits) into one of `dim` buckets; bucket
    counts are L2-normalised. Text with no tokens maps to the zero vector.

    Usage:
        embedder = HashEmbedder(dim=128)
        vectors = embedder.embed(["Habits compound", "Small gains add up"])
    """

    name = "hash"

    def __init__(self, dim: int = 128):
        self.dim = dim

    @staticmethod
    def _token_hash(token: str) -> int:
        h = 0
        for ch in token:
            h = (h * 31 + ord(ch)) & 0x7FFFFFFF
        return h

    def embed_one(self, text: str) -> np.ndarray:
        vec = np.zeros(self.dim, dtype=np.float64)
        for token in _NON_ALNUM.sub("", text.lower()).split():
            vec[self._token_hash(token) % self.dim] += 1.0
        norm = np.linalg.norm(vec)
        return vec / norm if norm > 0 else vec

    def embed(self, texts: list[str]) -> list[np.ndarray]:
        return [self.embed_one(t) for t in texts]


# ── Remote (Hugging Face inference) ────────────────────────────────

def mean_pool(token_embeddings: np.ndarray) -> np.ndarray:
    """Average per-token vectors (tokens x dim) into one vector."""
    return np.asarray(token_embeddings, dtype=np.float64).mean(axis=0)


def _coerce_vector(payload) -> Optional[np.ndarray]:
    """Turn one API item into a pooled vector, or None if unusable."""
    try:
        arr = np.asarray(payload, dtype=np.float64)
    except (TypeError, ValueError):
        return None
    while arr.ndim > 2 and arr.shape[0] == 1:
        arr = arr[0]
    if arr.ndim == 1 and arr.size > 0:
        return arr
    if arr.ndim == 2 and arr.shape[0] > 0 and arr.shape[1] > 0:
        return mean_pool(arr)
    return None


class RemoteEmbedder(BaseEmbedder):
    """
    Embeddings from the Hugging Face inference feature-extraction API.

    Texts are sent in batches of `batch_size`; batches run concurrently
    on a thread pool and are reassembled in input order. A failed batch
    falls back to hash vectors; an item with an unexpected shape falls
    back on its own. Per-token outputs are mean-pooled.

    Args:
        api_url: Feature-extraction endpoint.
        api_token: Bearer token. Without one, every text uses the fallback.
        batch_size: Texts per request.
        timeout_s: Per-request timeout in seconds.
        max_workers: Maximum concurrent requests.
        fallback: Embedder used for failed texts (default HashEmbedder()).
    """

    name = "remote"

    def __init__(
        self,
        api_url: str,
        api_token: Optional[str] = None,
        batch_size: int = 16,
        timeout_s: float = 20.0,
        max_workers: int = 4,
        fallback: Optional[HashEmbedder] = None,
    ):
        self.api_url = api_url
        self.api_token = api_token
        self.batch_size = batch_size
        self.timeout_s = timeout_s
        self.max_workers = max_workers
        self.fallback = fallback or HashEmbedder()

    def _embed_batch(self, batch: list[str]) -> list[np.ndarray]:
        try:
            response = requests.post(
                self.api_url,
                headers={
                    "Authorization": f"Bearer {self.api_token}",
                    "Content-Type": "application/json",
                },
                json={"inputs": batch, "options": {"wait_for_model": True}},
                timeout=self.timeout_s,
            )
        except requests.RequestException as e:
            logger.warning(f"Embedding request failed ({e}); using hash fallback")
            return self.fallback.embed(batch)

        if not response.ok:
            logger.warning(
                f"Embedding API error {response.status_code}: {response.text[:200]}"
            )
            return self.fallback.embed(batch)

        try:
            data = response.json()
        except ValueError:
            logger.warning("Embedding API returned non-JSON body; using hash fallback")
            return self.fallback.embed(batch)

        if not isinstance(data, list) or len(data) != len(batch):
            logger.warning("Embedding API returned unexpected payload; using hash fallback")
            return self.fallback.embed(batch)

        vectors = []
        for text, item in zip(batch, data):
            vec = _coerce_vector(item)
            if vec is None:
                logger.debug("Unusable embedding item; hashing text instead")
                vec = self.fallback.embed_one(text)
            vectors.append(vec)
        return vectors

    def embed(self, texts: list[str]) -> list[np.ndarray]:
        if not texts:
            return []
        if not self.api_token:
            logger.debug("No embedding token configured; using hash fallback")
            return self.fallback.embed(texts)

        batches = [
            texts[i:i + self.batch_size]
            for i in range(0, len(texts), self.batch_size)
        ]
        if len(batches) == 1:
            return self._embed_batch(batches[0])

        logger.debug(f"Embedding {len(texts)} texts in {len(batches)} batches")
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(batches))) as executor:
            # map() yields results in submission order regardless of completion order
            results = list(executor.map(self._embed_batch, batches))
        return [vec for batch_vectors in results for vec in batch_vectors]


# ── Local (sentence-transformers) ──────────────────────────────────

class LocalEmbedder(BaseEmbedder):
    """
    Embeddings from a local sentence-transformers model.

    The model is loaded lazily on first use. If the package is missing
    or the model cannot be loaded or run, texts fall back to hash vectors.

    Install with: pip install 'groundnote[local]'
    """

    name = "local"

    def __init__(
        self,
        model_name: str = "sentence-transformers/all-MiniLM-L6-v2",
        batch_size: int = 16,
        fallback: Optional[HashEmbedder] = None,
    ):
        self.model_name = model_name
        self.batch_size = batch_size
        self.fallback = fallback or HashEmbedder()
        self._model = None
        self._load_failed = False

    def _load_model(self) -> bool:
        if self._model is not None:
            return True
        if self._load_failed:
            return False
        try:
            from sentence_transformers import SentenceTransformer

            logger.info(f"Loading embedding model: {self.model_name}")
            self._model = SentenceTransformer(self.model_name)
            return True
        except ImportError:
            logger.warning(
                "sentence-transformers not installed; using hash fallback. "
                "Install with: pip install 'groundnote[local]'"
            )
        except (OSError, RuntimeError, ValueError) as e:
            logger.warning(f"Could not load {self.model_name} ({e}); using hash fallback")
        self._load_failed = True
        return False

    def embed(self, texts: list[str]) -> list[np.ndarray]:
        if not texts:
            return []
        if not self._load_model():
            return self.fallback.embed(texts)
        try:
            embeddings = self._model.encode(
                texts,
                batch_size=self.batch_size,
                show_progress_bar=False,
            )
        except (RuntimeError, ValueError) as e:
            logger.warning(f"Local embedding failed ({e}); using hash fallback")
            return self.fallback.embed(texts)
        return [np.asarray(row, dtype=np.float64) for row in embeddings]


# ── Factory ────────────────────────────────────────────────────────

def get_embedder(config: GroundNoteConfig) -> BaseEmbedder:
    """
    Build the embedding strategy described by config.

    provider:
        - "auto":   remote when an HF token is configured, else hash
        - "remote": remote (falls back per text when it cannot be used)
        - "local":  sentence-transformers
        - "hash":   deterministic hash vectors only
    """
    emb = config.embedding
    fallback = HashEmbedder(dim=emb.hash_dim)
    provider = emb.provider.lower()

    if provider == "auto":
        provider = "remote" if config.has_hf_token else "hash"

    if provider == "hash":
        return fallback
    if provider == "remote":
        return RemoteEmbedder(
            api_url=emb.api_url,
            api_token=config.hf_api_token if config.has_hf_token else None,
            batch_size=emb.batch_size,
            timeout_s=emb.timeout_s,
            max_workers=emb.max_workers,
            fallback=fallback,
        )
    if provider == "local":
        return LocalEmbedder(
            model_name=emb.model_name,
            batch_size=emb.batch_size,
            fallback=fallback,
        )
    raise ValueError(
        f"Unknown embedding provider: {emb.provider}. Use: auto, remote, local, hash"
    )
