"""
GroundNote Evaluation
======================

Components:
    - faithfulness.py: similarity-based support scoring of generated items
"""
