"""
GroundNote Configuration System
================================

Central configuration using Pydantic Settings. Supports:
- Environment variables (GROUNDNOTE_ prefix)
- .env file loading
- YAML config file overrides
- Provider credentials under their conventional names
  (GROQ_API_KEY, HF_API_TOKEN) as well as the prefixed ones

The config produces a deterministic hash for reproducibility tracking.
Every stored run record is stamped with this hash.

Usage:
    from groundnote.config import get_config
    cfg = get_config()                       # loads from env / .env
    cfg = get_config("configs/offline.yaml") # loads with YAML overrides
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Values shipped in example .env files; treated as "not configured".
PLACEHOLDER_SECRETS = frozenset({
    "",
    "your-groq-api-key-here",
    "your-hf-token-here",
})


# ── Sub-configs ────────────────────────────────────────────────────
class SegmentConfig(BaseModel):
    """Configuration for turning raw notes into citable units."""
    min_unit_chars: int = Field(default=3, description="Units shorter than this are dropped")
    min_notes_chars: int = Field(
        default=10,
        description="Minimum trimmed notes length accepted by the orchestrator",
    )


class EmbeddingConfig(BaseModel):
    """Configuration for the embedding provider adapter."""
    provider: str = Field(
        default="auto",
        description="'auto', 'remote' (HF inference), 'local' (sentence-transformers) or 'hash'",
    )
    model_name: str = Field(
        default="sentence-transformers/all-MiniLM-L6-v2",
        description="Embedding model (HuggingFace ID)",
    )
    api_url: str = Field(
        default=(
            "https://router.huggingface.co/hf-inference/models/"
            "sentence-transformers/all-MiniLM-L6-v2/pipeline/feature-extraction"
        ),
        description="Feature-extraction endpoint for the remote provider",
    )
    batch_size: int = Field(default=16, ge=1, description="Texts per remote request")
    hash_dim: int = Field(default=128, ge=1, description="Dimension of the hash fallback vector")
    timeout_s: float = Field(default=20.0, gt=0, description="Per-request timeout (seconds)")
    max_workers: int = Field(default=4, ge=1, description="Concurrent remote batches")


class RetrievalConfig(BaseModel):
    """Configuration for the evidence retriever."""
    enabled: bool = Field(default=True, description="Narrow units before generation")
    top_k: int = Field(default=5, ge=1, description="Units kept per query")
    threshold: float = Field(default=0.15, description="Minimum cosine score kept per query")
    short_circuit_units: int = Field(
        default=6,
        description="At or below this many units, retrieval returns everything",
    )


class GenerationConfig(BaseModel):
    """Configuration for the text-generation collaborator and repair loop."""
    model: str = Field(default="llama-3.3-70b-versatile", description="Groq model ID")
    base_url: str = Field(
        default="https://api.groq.com/openai/v1",
        description="OpenAI-compatible endpoint",
    )
    timeout_s: float = Field(default=45.0, gt=0, description="Per-call timeout (seconds)")
    max_tokens: int = Field(default=2048, description="Completion token cap")
    temperatures: dict[str, float] = Field(
        default_factory=lambda: {
            "oneMinute": 0.3,
            "technical": 0.2,
            "kidFriendly": 0.5,
            "interview": 0.3,
        },
        description="Sampling temperature per mode",
    )
    default_temperature: float = Field(default=0.3, description="Used for modes missing above")
    default_strictness: str = Field(default="strict", description="'strict' or 'balanced'")
    fail_on_missing_citations: bool = Field(
        default=False,
        description="Fail the run when repaired output still cites unknown units",
    )

    def temperature_for(self, mode: str) -> float:
        return self.temperatures.get(mode, self.default_temperature)


class EvaluationConfig(BaseModel):
    """Configuration for the faithfulness evaluator."""
    faithfulness_threshold: float = Field(
        default=0.45,
        ge=-1.0, le=1.0,
        description="Items whose similarity falls below this are flagged",
    )


class StorageConfig(BaseModel):
    """Configuration for the note-set repository."""
    store_path: Path = Field(
        default=Path("./data/notesets.json"),
        description="JSON file holding note sets and run history",
    )


# ── Main Config ────────────────────────────────────────────────────
class GroundNoteConfig(BaseSettings):
    """
    Root configuration for GroundNote.

    Loads from environment variables (GROUNDNOTE_ prefix) and .env file.
    Can be extended with YAML overrides via `get_config(yaml_path)`.

    Example:
        export GROQ_API_KEY=gsk_...
        export GROUNDNOTE_LOG_LEVEL=DEBUG
    """
    model_config = SettingsConfigDict(
        env_prefix="GROUNDNOTE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        populate_by_name=True,
    )

    # ── Top-level settings ─────────────────────────────────────────
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="text", description="Log format: 'json' or 'text'")

    # ── Credentials ────────────────────────────────────────────────
    groq_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("groq_api_key", "GROUNDNOTE_GROQ_API_KEY", "GROQ_API_KEY"),
        description="Groq API key for generation",
    )
    hf_api_token: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("hf_api_token", "GROUNDNOTE_HF_API_TOKEN", "HF_API_TOKEN"),
        description="Hugging Face token for remote embeddings",
    )

    # ── Sub-configs ────────────────────────────────────────────────
    segment: SegmentConfig = Field(default_factory=SegmentConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    evaluation: EvaluationConfig = Field(default_factory=EvaluationConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    @property
    def has_groq_key(self) -> bool:
        """True when a usable (non-placeholder) Groq key is configured."""
        return (self.groq_api_key or "").strip() not in PLACEHOLDER_SECRETS

    @property
    def has_hf_token(self) -> bool:
        """True when a usable (non-placeholder) HF token is configured."""
        return (self.hf_api_token or "").strip() not in PLACEHOLDER_SECRETS

    def config_hash(self) -> str:
        """
        Produce a deterministic SHA-256 hash of the configuration.

        Secrets are excluded so that rotating a key does not change
        the hash of otherwise identical runs.
        """
        config_dict = self.model_dump(mode="json", exclude={"groq_api_key", "hf_api_token"})
        canonical = json.dumps(config_dict, sort_keys=True, default=str)
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]

    def ensure_dirs(self) -> None:
        """Create the directory holding the note-set store."""
        self.storage.store_path.parent.mkdir(parents=True, exist_ok=True)


# ── Config Loading ─────────────────────────────────────────────────
def get_config(yaml_path: Optional[str] = None) -> GroundNoteConfig:
    """
    Load GroundNote configuration.

    Priority (highest to lowest):
        1. YAML config file (if provided)
        2. Environment variables (GROUNDNOTE_ prefix)
        3. .env file
        4. Default values

    Args:
        yaml_path: Optional path to a YAML config file for overrides.

    Returns:
        Fully resolved GroundNoteConfig instance.
    """
    if yaml_path:
        import yaml
        with open(yaml_path, encoding="utf-8") as f:
            overrides = yaml.safe_load(f) or {}
        return GroundNoteConfig(**overrides)
    return GroundNoteConfig()
