"""
GroundNote Ingestion
=====================

Components:
    - segmenter.py: raw notes → citable units (H1..Hn)
    - embedder.py:  hash / remote / local embedding strategies
"""
