"""Keyword heuristics over raw user text.

Pure functions with fixed keyword tables, so each one can be tested alone and
swapped for a model-based classifier without touching the pipeline. False
positives and negatives are expected: "show me a joke" is a chart request,
"what were sales per quarter?" is not.
"""

from __future__ import annotations

import re

CHART_KEYWORDS: tuple[str, ...] = (
    "chart",
    "graph",
    "plot",
    "visualize",
    "visualization",
    "histogram",
    "show me",
    "create a",
    "generate a",
    "draw a",
)

BACKGROUND_KEYWORDS: tuple[str, ...] = (
    "background",
    "bg",
    "with background",
    "background image",
    "background color",
    "background pattern",
    "background gradient",
)

# "with <desc> chart" / "background: <desc>"; first match only
_BACKGROUND_DESC_RE = re.compile(
    r".*?(?:with|background|bg)[:\s]+(.*?)(?:chart|graph|showing|displaying|$)",
    re.IGNORECASE,
)
_CHART_VERBS_RE = re.compile(
    r"\b(?:create|show|generate|display|chart|graph|pie|bar|line|doughnut)\b",
    re.IGNORECASE,
)
_WATERMARK_STRIP_RE = re.compile(
    r"\b(?:create|show|generate|display|chart|graph|pie|bar|line|doughnut|me|a|an|the)\b",
    re.IGNORECASE,
)


def is_chart_request(text: str) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in CHART_KEYWORDS)


def extract_background_prompt(text: str) -> str | None:
    """Background description the user asked for, or None when no trigger is present."""
    lowered = text.lower()
    if not any(keyword in lowered for keyword in BACKGROUND_KEYWORDS):
        return None

    description = _BACKGROUND_DESC_RE.sub(r"\1", text, count=1).strip()

    if len(description) < 3:
        description = " ".join(_CHART_VERBS_RE.sub("", text).split()[:5])

    if len(description) > 2:
        return description
    return None


def extract_watermark_prompt(text: str) -> str:
    """Short subject phrase used to ask the model for watermark text."""
    cleaned = _WATERMARK_STRIP_RE.sub("", text)
    words = [w for w in cleaned.split() if len(w) > 2][:5]
    if words:
        return " ".join(words)
    return text[:15]
