"""
Prompt Templates
=================

Instructions sent to the generation collaborator.

    system prompt  — grounding, citation, quality and format rules;
                     strictness decides whether inference is allowed
    user prompt    — mode rules (rendered from MODE_POLICIES), an example
                     JSON shape, and the numbered evidence block
    repair prompt  — numbered diagnostics, the invalid output verbatim,
                     and the same evidence block

Numeric limits in the mode rules come from the policy table so the
prompt and the validator cannot drift apart.
"""

from __future__ import annotations

from groundnote.contract.policy import get_policy
from groundnote.schemas.output import Mode, Strictness

MALFORMED_JSON_ERROR = "Response was not valid JSON. Return ONLY a JSON object."

_STRICT_RULE = (
    '- Make NO inferences. Every claim must be stated in a highlight. '
    'Every item must use "support": "direct".'
)
_BALANCED_RULE = (
    "- Mild inferences are allowed only when several highlights clearly support them. "
    'Label those items "support": "inferred"; stated claims use "support": "direct".'
)

SYSTEM_PROMPT_TEMPLATE = """You summarize a reader's notes. The numbered highlights below are your ONLY source of truth.

GROUNDING RULES:
- Never add facts, claims or ideas that are absent from the highlights.
- Every sentence must trace back to one or more highlights.
- When the highlights are not enough, add a message to "warnings" instead of inventing content.
{support_rule}

CITATION RULES:
- Each item cites 1-2 highlight IDs (H1, H2, ...) that contain its claim.
- An item citing two highlights must actually combine information from both.
- Avoid citing the same highlight in more than 2 items.
- Only cite IDs that appear in the highlight list.

QUALITY RULES:
- No filler such as "The author argues..." or "It is important to note...".
- Each item names at least one concrete term taken from the highlights.
- Do not repeat an idea across items; every item adds something new.

FORMAT:
- Return ONLY one valid JSON object, starting with {{ and ending with }}.
- No markdown, no code fences, no commentary."""


def build_system_prompt(strictness: Strictness | str = Strictness.STRICT) -> str:
    """Render the shared system instruction for a strictness level."""
    strictness = Strictness(strictness)
    rule = _STRICT_RULE if strictness == Strictness.STRICT else _BALANCED_RULE
    return SYSTEM_PROMPT_TEMPLATE.format(support_rule=rule)


# ── Mode instructions ──────────────────────────────────────────────

_MODE_GUIDANCE: dict[Mode, dict[str, str]] = {
    Mode.ONE_MINUTE: {
        "title": "1-Minute Summary",
        "structure": "Return 4 items in this order: thesis, key point, key point, conclusion.",
        "style": "Keep the language plain and concrete.",
        "example": """{
  "mode": "oneMinute",
  "items": [
    { "text": "Deep work is focused effort without distraction that pushes thinking to its limit.", "citations": ["H1"], "support": "direct" },
    { "text": "Shallow tasks like email fill the day but create little lasting value.", "citations": ["H2"], "support": "direct" },
    { "text": "Scheduling fixed blocks for focus protects attention better than relying on discipline.", "citations": ["H4"], "support": "direct" },
    { "text": "Treating focus as a trained skill turns it into a durable advantage.", "citations": ["H5", "H7"], "support": "direct" }
  ],
  "warnings": []
}""",
    },
    Mode.TECHNICAL: {
        "title": "Technical Deep Dive",
        "structure": (
            "Return 5-7 items covering: core framework, mechanisms, an implementation "
            "detail, a tradeoff or limitation, and a synthesis."
        ),
        "style": "Use the precise terminology found in the highlights.",
        "example": """{
  "mode": "technical",
  "items": [
    { "text": "Deep work is defined as cognitively demanding activity performed in a distraction-free state.", "citations": ["H1"], "support": "direct" },
    { "text": "Attention residue from task switching lowers performance on the next task.", "citations": ["H3"], "support": "direct" },
    { "text": "Time-blocking assigns every minute a purpose, replacing reactive scheduling.", "citations": ["H4"], "support": "direct" },
    { "text": "Shutdown rituals close open loops so recovery time is genuinely restful.", "citations": ["H6"], "support": "direct" },
    { "text": "The approach trades responsiveness to colleagues for higher-quality output.", "citations": ["H2", "H8"], "support": "direct" }
  ],
  "warnings": []
}""",
    },
    Mode.KID_FRIENDLY: {
        "title": "Kid-Friendly",
        "structure": "Return 3 items: the simple idea, an analogy, and a fun example.",
        "style": (
            'Include at least one analogy using "like", "imagine", "pretend", "think of" '
            'or "picture". Use words a 10-year-old understands.'
        ),
        "example": """{
  "mode": "kidFriendly",
  "items": [
    { "text": "Doing one thing at a time helps your brain do its very best work.", "citations": ["H1"], "support": "direct" },
    { "text": "Switching tasks is like leaving crumbs of your attention everywhere you go.", "citations": ["H3"], "support": "direct" },
    { "text": "Imagine a timer where you only build your Lego castle until it rings.", "citations": ["H4"], "support": "direct" }
  ],
  "warnings": []
}""",
    },
    Mode.INTERVIEW: {
        "title": "Interview Prep",
        "structure": "Return EXACTLY 5 items. Not 4, not 6.",
        "style": "Phrase each item as a professional insight, skill or actionable takeaway.",
        "example": """{
  "mode": "interview",
  "items": [
    { "text": "Protect multi-hour focus blocks to deliver complex work faster and with fewer errors.", "citations": ["H1"], "support": "direct" },
    { "text": "Batch email and chat so shallow tasks stop fragmenting the workday.", "citations": ["H2"], "support": "direct" },
    { "text": "Reduce attention residue by finishing or parking a task before switching.", "citations": ["H3"], "support": "direct" },
    { "text": "Plan every hour in advance and revise the plan when priorities change.", "citations": ["H4"], "support": "direct" },
    { "text": "Use an end-of-day shutdown ritual to recover fully and return sharper.", "citations": ["H6"], "support": "direct" }
  ],
  "warnings": []
}""",
    },
}


def _mode_rules(mode: Mode) -> list[str]:
    policy = get_policy(mode)
    guidance = _MODE_GUIDANCE[mode]
    rules = []
    if policy.word_limit is not None:
        rules.append(f"Total words across ALL items: ≤ {policy.word_limit}")
    rules.append(guidance["structure"])
    rules.append(f"Allowed item count: {policy.item_range_text()}")
    if policy.item_word_limit is not None:
        rules.append(f"Each item text: ≤ {policy.item_word_limit} words")
    rules.append(guidance["style"])
    rules.append("Each item needs 1-2 citations")
    return rules


def build_mode_instructions(mode: Mode | str) -> str:
    mode = Mode(mode)
    guidance = _MODE_GUIDANCE[mode]
    rules = "\n".join(f"- {rule}" for rule in _mode_rules(mode))
    return (
        f"MODE: {mode.value} ({guidance['title']})\n"
        f"RULES:\n{rules}\n\n"
        f"EXACT JSON SHAPE:\n{guidance['example']}"
    )


def build_user_prompt(mode: Mode | str, units_block: str) -> str:
    """Render the generation instruction for a mode and evidence block."""
    return (
        f"{build_mode_instructions(mode)}\n\n"
        f"HIGHLIGHTS (your ONLY source, cite by ID):\n\n"
        f"{units_block}\n\n"
        f"Return ONLY the JSON object. No markdown. No explanation."
    )


def build_repair_prompt(invalid_raw: str, errors: list[str], units_block: str) -> str:
    """Render the one-shot repair instruction with itemized diagnostics."""
    numbered = "\n".join(f"  {i}. {err}" for i, err in enumerate(errors, start=1))
    return (
        "Your previous response FAILED validation. Fix ALL errors and return "
        "corrected JSON only.\n\n"
        f"ERRORS:\n{numbered}\n\n"
        f"YOUR INVALID OUTPUT:\n{invalid_raw}\n\n"
        f"HIGHLIGHTS (same as before):\n{units_block}\n\n"
        "Return ONLY the corrected JSON. No markdown. No explanation. "
        "Start with { and end with }."
    )
