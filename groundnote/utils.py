"""
GroundNote Utilities
=====================

Shared helpers for logging, record IDs, rounding, timestamps and
JSON I/O used across all modules.
"""

from __future__ import annotations

import json
import logging
import math
import sys
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


# ── Identifiers ────────────────────────────────────────────────────

def generate_id() -> str:
    """Short sortable ID for stored records: ``{epoch_ms}_{6 hex}``."""
    return f"{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


# ── Numbers ────────────────────────────────────────────────────────

def round_half_up(value: float, ndigits: int = 0) -> float:
    """
    Round with halves going up (37.5 → 38, 12.5 → 13).

    Python's built-in round() uses banker's rounding, which would make
    percentages such as 12.5 come out as 12.
    """
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def percent(part: int, whole: int) -> int:
    """Integer percentage of part/whole, rounded half-up; 0 when whole is 0."""
    if whole <= 0:
        return 0
    return int(round_half_up(part / whole * 100))


# ── Logging ────────────────────────────────────────────────────────

def setup_logging(
    level: str = "INFO",
    format_style: str = "text",
    run_id: str | None = None
) -> logging.Logger:
    """
    Configure structured logging for GroundNote.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        format_style: "json" for structured logs, "text" for human-readable.
        run_id: Optional run ID to include in all log entries.

    Returns:
        Configured Logger instance.
    """
    logger = logging.getLogger("groundnote")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)

    if format_style == "json":
        class JsonFormatter(logging.Formatter):
            def format(self, record):
                log_entry = {
                    "timestamp": self.formatTime(record),
                    "level": record.levelname,
                    "module": record.module,
                    "message": record.getMessage(),
                }
                if run_id:
                    log_entry["run_id"] = run_id
                if record.exc_info:
                    log_entry["exception"] = self.formatException(record.exc_info)
                return json.dumps(log_entry)

        handler.setFormatter(JsonFormatter())
    else:
        fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        if run_id:
            fmt = f"%(asctime)s | %(levelname)-8s | {run_id} | %(name)s | %(message)s"
        handler.setFormatter(logging.Formatter(fmt, datefmt="%H:%M:%S"))

    logger.addHandler(handler)
    return logger


# ── File I/O Helpers ───────────────────────────────────────────────

def save_json(data: Any, path: str | Path, indent: int = 2) -> Path:
    """Save data as formatted JSON file with UTF-8 encoding."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent, ensure_ascii=False, default=str)
    return path


def load_json(path: str | Path) -> Any:
    """Load a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
