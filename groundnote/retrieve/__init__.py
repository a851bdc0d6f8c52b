"""
GroundNote Retrieval
=====================

Components:
    - similarity.py: cosine similarity with graceful degenerate cases
    - evidence.py:   per-mode query plans + multi-query top-k retriever
"""
