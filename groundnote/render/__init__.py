"""
GroundNote Rendering
=====================

Components:
    - markdown.py: Markdown export of a run with its cited highlights
"""
