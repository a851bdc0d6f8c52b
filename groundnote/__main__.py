"""
Allow running GroundNote as a module: ``python -m groundnote``.

This delegates to the CLI entry point so that both
``groundnote`` (console script) and ``python -m groundnote``
behave identically.
"""

from groundnote.cli import main

if __name__ == "__main__":
    main()
