"""
Mode Policies
==============

Declarative per-mode output rules. Adding a mode means adding a row to
MODE_POLICIES; the validator applies whichever rules a policy declares
and never branches on the mode itself.

Authoritative table:

    | Mode        | Word ceiling | Items   | Per-item ceiling | Content predicate |
    |-------------|--------------|---------|------------------|-------------------|
    | oneMinute   | 120          | 3–5     | —                | —                 |
    | technical   | 250          | 4–8     | —                | —                 |
    | kidFriendly | 120          | 2–4     | —                | analogy marker    |
    | interview   | —            | exactly 5 | 18             | —                 |

Policies are static configuration, not runtime state.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from groundnote.schemas.output import Mode

ANALOGY_MARKERS: tuple[str, ...] = (
    "like",
    "like a",
    "imagine",
    "pretend",
    "as if",
    "similar to",
    "think of",
    "just as",
    "picture",
)


class ModePolicy(BaseModel):
    """
    Structural rules for one mode.

    Optional fields are rules the mode does not declare; the validator
    skips them.
    """
    model_config = ConfigDict(frozen=True)

    mode: Mode
    label: str = Field(description="Human-readable mode name used in diagnostics")
    description: str = ""
    word_limit: Optional[int] = Field(default=None, description="Total word ceiling")
    min_items: int = Field(ge=1)
    max_items: int = Field(ge=1)
    item_word_limit: Optional[int] = Field(default=None, description="Per-item word ceiling")
    required_markers: tuple[str, ...] = Field(
        default=(),
        description="At least one phrase must appear in the combined item text",
    )
    marker_message: str = Field(
        default="",
        description="Diagnostic used when no required marker is found",
    )

    @model_validator(mode="after")
    def validate_item_range(self) -> "ModePolicy":
        if self.min_items > self.max_items:
            raise ValueError(
                f"min_items ({self.min_items}) must be <= max_items ({self.max_items})"
            )
        return self

    @property
    def exact_items(self) -> bool:
        return self.min_items == self.max_items

    def item_range_text(self) -> str:
        if self.exact_items:
            return f"exactly {self.min_items}"
        return f"{self.min_items}–{self.max_items}"


MODE_POLICIES: dict[Mode, ModePolicy] = {
    Mode.ONE_MINUTE: ModePolicy(
        mode=Mode.ONE_MINUTE,
        label="1-Minute",
        description="Thesis + key points + conclusion in ≤120 words",
        word_limit=120,
        min_items=3,
        max_items=5,
    ),
    Mode.TECHNICAL: ModePolicy(
        mode=Mode.TECHNICAL,
        label="Technical",
        description="Frameworks, mechanisms, tradeoffs in ≤250 words",
        word_limit=250,
        min_items=4,
        max_items=8,
    ),
    Mode.KID_FRIENDLY: ModePolicy(
        mode=Mode.KID_FRIENDLY,
        label="Kid-Friendly",
        description="Simple language + analogies in ≤120 words",
        word_limit=120,
        min_items=2,
        max_items=4,
        required_markers=ANALOGY_MARKERS,
        marker_message='must include an analogy ("like", "imagine", "think of", "pretend", etc.)',
    ),
    Mode.INTERVIEW: ModePolicy(
        mode=Mode.INTERVIEW,
        label="Interview",
        description="Exactly 5 bullets, each ≤18 words",
        min_items=5,
        max_items=5,
        item_word_limit=18,
    ),
}


def get_policy(mode: Mode | str) -> ModePolicy:
    """Look up the policy for a mode (enum or wire value)."""
    return MODE_POLICIES[Mode(mode)]
