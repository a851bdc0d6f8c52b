"""
GroundNote — Citation-Grounded Note Summarization
===================================================

GroundNote turns unstructured notes into mode-specific summaries in which
every item cites the highlights it was drawn from. Generated output is
checked against a strict per-mode output contract and repaired once when
it falls short.

Architecture Overview:
    Notes → Segment → Retrieve → Generate → Validate → (Repair) → Evaluate

Modules:
    - ingest:    Note segmentation and embedding providers
    - retrieve:  Cosine similarity + multi-query evidence retrieval
    - contract:  Per-mode policies, output validator, run metrics
    - generate:  LLM client, prompts, repair-loop orchestrator
    - evaluate:  Post-hoc faithfulness scoring
    - storage:   Note-set and run-history repository
    - render:    Markdown export
    - pipeline:  End-to-end facade
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
