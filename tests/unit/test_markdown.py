"""
Markdown Export Tests
======================
"""

from __future__ import annotations

from groundnote.render.markdown import to_markdown
from groundnote.schemas.output import OutputItem
from tests.conftest import make_metrics, make_unit

UNITS = [
    make_unit(1, "Deep work is rare and valuable."),
    make_unit(2, "Attention residue lowers performance."),
    make_unit(3, "Shutdown rituals help recovery."),
]


def test_layout():
    items = [
        OutputItem(text="Focus is a scarce skill.", citations=["H2", "H1"]),
        OutputItem(text="Rest restores attention.", citations=["H3"]),
    ]
    md = to_markdown("Deep Work", "interview", items, UNITS)
    lines = md.split("\n")

    assert lines[0] == "# Deep Work"
    assert lines[1] == "**Mode:** Interview"
    assert "1. Focus is a scarce skill. [H2, H1]" in lines
    assert "2. Rest restores attention. [H3]" in lines
    assert md.index("## Cited Highlights") > md.index("2. Rest")


def test_appendix_first_seen_order_and_deduplicated():
    items = [
        OutputItem(text="a", citations=["H3", "H1"]),
        OutputItem(text="b", citations=["H1"]),
    ]
    md = to_markdown("T", "oneMinute", items, UNITS)
    appendix = md.split("## Cited Highlights", 1)[1]
    assert appendix.index("**H3:**") < appendix.index("**H1:**")
    assert appendix.count("**H1:**") == 1
    assert "**H2:**" not in appendix


def test_single_item_not_numbered():
    md = to_markdown("T", "technical", [OutputItem(text="Only one.", citations=["H1"])], UNITS)
    assert "Only one. [H1]" in md.split("\n")
    assert "1. Only one." not in md


def test_unresolvable_citation_left_out_of_appendix():
    items = [OutputItem(text="Claim.", citations=["H1", "H9"])]
    md = to_markdown("T", "kidFriendly", items, UNITS)
    assert "[H1, H9]" in md
    assert "**H9:**" not in md
    assert "**H1:** Deep work is rare and valuable." in md


def test_metrics_line():
    metrics = make_metrics(word_count=42, item_count=3, citation_coverage=38)
    items = [OutputItem(text="x", citations=["H1"])]
    md = to_markdown("T", "oneMinute", items, UNITS, metrics=metrics)
    assert "*42 words · 3 items · 38% coverage*" in md
    assert "coverage" not in to_markdown("T", "oneMinute", items, UNITS)
