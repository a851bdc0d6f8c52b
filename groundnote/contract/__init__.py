"""
GroundNote Output Contract
===========================

Components:
    - policy.py:    declarative per-mode policy table
    - validator.py: base-shape + mode-policy validation, citation
                    existence, run metrics, JSON schema export
"""
