"""
GroundNote Generation
======================

Components:
    - client.py:       text-generation collaborator (Groq) + JSON extraction
    - prompts.py:      system / user / repair prompt builders
    - orchestrator.py: retrieve → prompt → generate → validate → repair
"""
