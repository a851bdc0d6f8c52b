"""
GroundNote Storage
===================

Components:
    - repository.py: note sets, append-only run history, aggregate stats
"""
