"""
Markdown Export
================

Renders a finished run as a Markdown document:

    # Title
    **Mode:** Interview

    ---

    1. First item [H1, H3]

    ...

    ---

    ## Cited Highlights

    **H1:** text of H1
"""

from __future__ import annotations

from typing import Optional

from groundnote.contract.policy import get_policy
from groundnote.schemas.metrics import RunMetrics
from groundnote.schemas.notes import CitableUnit
from groundnote.schemas.output import Mode, OutputItem


def to_markdown(
    title: str,
    mode: Mode | str,
    items: list[OutputItem],
    units: list[CitableUnit],
    metrics: Optional[RunMetrics] = None,
) -> str:
    """
    Render items with their citation tags and an appendix of cited units.

    Items are numbered when there is more than one. Cited IDs that do
    not resolve to a unit are left out of the appendix.
    """
    label = get_policy(mode).label
    texts = {u.unit_id: u.text for u in units}

    lines = [f"# {title}", f"**Mode:** {label}", ""]
    if metrics is not None:
        lines += [
            f"*{metrics.word_count} words · {metrics.item_count} items · "
            f"{metrics.citation_coverage}% coverage*",
            "",
        ]
    lines += ["---", ""]

    for i, item in enumerate(items, start=1):
        prefix = f"{i}. " if len(items) > 1 else ""
        lines += [f"{prefix}{item.text} [{', '.join(item.citations)}]", ""]

    lines += ["---", "", "## Cited Highlights", ""]
    seen: dict[str, None] = {}
    for item in items:
        for cid in item.citations:
            seen.setdefault(cid, None)
    for cid in seen:
        if cid in texts:
            lines += [f"**{cid}:** {texts[cid]}", ""]

    return "\n".join(lines)
