"""Background synthesis — a 2-3 word model description mapped to a drawing procedure.

Routing is plain substring matching on the description:
- "gradient"          → diagonal linear gradient (top-left → bottom-right)
- "grid" / "pattern"  → light grid lines over a white base
- anything else       → solid tint

Colours come from one keyword table and are all near-white at high opacity,
so the backdrop never competes with the plotted data.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

import numpy as np
from PIL import Image, ImageDraw

from app.engine.errors import BackgroundSynthesisFailed, ModelUnavailable
from app.llm.prompts import render_prompt

if TYPE_CHECKING:
    from app.llm.client import TextGenerationClient

logger = logging.getLogger(__name__)

RGBA = tuple[int, int, int, int]
BackgroundKind = Literal["gradient", "pattern", "solid"]


def _rgba(r: int, g: int, b: int, a: float) -> RGBA:
    return (r, g, b, round(a * 255))


# keyword → (gradient start, gradient end, solid tint); first match wins
_COLOR_TABLE: tuple[tuple[str, RGBA, RGBA, RGBA], ...] = (
    ("blue", _rgba(240, 248, 255, 0.8), _rgba(230, 240, 255, 0.8), _rgba(240, 248, 255, 0.9)),
    ("green", _rgba(240, 255, 240, 0.8), _rgba(230, 255, 230, 0.8), _rgba(240, 255, 240, 0.9)),
    ("purple", _rgba(250, 245, 255, 0.8), _rgba(240, 235, 255, 0.8), _rgba(250, 245, 255, 0.9)),
    ("gray", _rgba(255, 255, 255, 0.95), _rgba(248, 250, 252, 0.95), _rgba(248, 250, 252, 0.9)),
    ("grey", _rgba(255, 255, 255, 0.95), _rgba(248, 250, 252, 0.95), _rgba(248, 250, 252, 0.9)),
    ("light", _rgba(255, 255, 255, 0.95), _rgba(248, 250, 252, 0.95), _rgba(255, 255, 255, 0.95)),
)
_DEFAULT_GRADIENT = (_rgba(255, 255, 255, 0.95), _rgba(248, 250, 252, 0.95))
_DEFAULT_TINT = (255, 255, 255, 255)

GRID_PITCH = 20
_GRID_BASE: RGBA = (255, 255, 255, 255)
_GRID_LINE: RGBA = _rgba(0, 0, 0, 0.05)


@dataclass(frozen=True)
class BackgroundPlan:
    kind: BackgroundKind
    colors: tuple[RGBA, ...]
    color_keyword: str | None
    description: str


def color_keyword(description: str) -> str | None:
    lowered = description.lower()
    for keyword, *_ in _COLOR_TABLE:
        if keyword in lowered:
            return keyword
    return None


def plan_background(description: str) -> BackgroundPlan:
    """Pick the drawing procedure and its colours for a description. Deterministic."""
    lowered = description.lower()
    keyword = color_keyword(lowered)
    entry = next((row for row in _COLOR_TABLE if row[0] == keyword), None)

    if "gradient" in lowered:
        colors = (entry[1], entry[2]) if entry else _DEFAULT_GRADIENT
        return BackgroundPlan("gradient", colors, keyword, description)
    if "grid" in lowered or "pattern" in lowered:
        return BackgroundPlan("pattern", (_GRID_BASE, _GRID_LINE), keyword, description)
    colors = (entry[3],) if entry else (_DEFAULT_TINT,)
    return BackgroundPlan("solid", colors, keyword, description)


def render_background(plan: BackgroundPlan, width: int, height: int) -> Image.Image:
    """Draw the plan as an RGBA layer of the given size."""
    if plan.kind == "gradient":
        return _linear_gradient(width, height, plan.colors[0], plan.colors[1])
    if plan.kind == "pattern":
        return _grid(width, height, plan.colors[0], plan.colors[1])
    return Image.new("RGBA", (width, height), plan.colors[0])


def _linear_gradient(width: int, height: int, start: RGBA, end: RGBA) -> Image.Image:
    # Projection of each pixel onto the (0,0)→(w,h) diagonal
    ys, xs = np.mgrid[0:height, 0:width].astype(np.float64)
    t = np.clip((xs * width + ys * height) / float(width * width + height * height), 0.0, 1.0)
    start_arr = np.asarray(start, dtype=np.float64)
    end_arr = np.asarray(end, dtype=np.float64)
    pixels = start_arr + (end_arr - start_arr) * t[..., None]
    return Image.fromarray(np.round(pixels).astype(np.uint8))


def _grid(width: int, height: int, base: RGBA, line: RGBA) -> Image.Image:
    image = Image.new("RGBA", (width, height), base)
    lines = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    draw = ImageDraw.Draw(lines)
    for x in range(0, width + 1, GRID_PITCH):
        draw.line([(x, 0), (x, height)], fill=line, width=1)
    for y in range(0, height + 1, GRID_PITCH):
        draw.line([(0, y), (width, y)], fill=line, width=1)
    return Image.alpha_composite(image, lines)


class BackgroundSynthesizer:
    """Asks the model for a short background description and draws it."""

    def __init__(self, client: TextGenerationClient | None = None) -> None:
        self.client = client

    async def describe(self, prompt: str) -> str:
        """Lower-cased 2-3 word description from the model.

        Raises:
            BackgroundSynthesisFailed: no client, model failure, or empty answer.
        """
        if self.client is None:
            raise BackgroundSynthesisFailed("no text-generation client configured")
        try:
            response = await self.client.generate(render_prompt("background", prompt), task="background")
        except ModelUnavailable as e:
            raise BackgroundSynthesisFailed(str(e)) from e

        description = response.strip().lower()
        if not description:
            raise BackgroundSynthesisFailed("model returned an empty description")
        logger.info("Background description: %s", description)
        return description

    async def synthesize(self, prompt: str, width: int, height: int) -> tuple[Image.Image, str]:
        """Return the background layer and the description it was drawn from."""
        description = await self.describe(prompt)
        plan = plan_background(description)
        logger.debug("Background plan: %s (%s)", plan.kind, plan.color_keyword or "default")
        return render_background(plan, width, height), description
