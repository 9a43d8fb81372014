"""Watermark stage — pick the watermark text and stamp it on the image."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING, Literal

from matplotlib import font_manager
from PIL import Image, ImageDraw, ImageFont

from app.engine.errors import ModelUnavailable, WatermarkGenerationFailed
from app.llm.prompts import render_prompt

if TYPE_CHECKING:
    from app.llm.client import TextGenerationClient

logger = logging.getLogger(__name__)

WatermarkSource = Literal["background", "model", "heuristic"]

# Answers this long are explanations, not a phrase
MAX_MODEL_TEXT_LENGTH = 60

STOP_WORDS = frozenset({
    "create", "show", "generate", "display", "draw", "make", "plot",
    "chart", "graph", "pie", "bar", "line", "doughnut",
    "me", "a", "an", "the", "of", "for", "with", "and", "showing",
})

# Rendering constants
MAX_FONT_PX = 24
WIDTH_FRACTION = 0.3
ROTATION_DEG = 30
OPACITY = 0.3
MARGIN_RIGHT = 20
MARGIN_BOTTOM = 30
_FILL = (102, 102, 102, 255)    # #666666
_STROKE = (153, 153, 153, 255)  # #999999

_QUOTES_RE = re.compile(r"^[\"'`]+|[\"'`]+$")
_LABEL_PREFIX_RE = re.compile(r"^(?:watermark|text)\s*:\s*", re.IGNORECASE)
_ARTICLE_RE = re.compile(r"^(?:the|a|an)\s+", re.IGNORECASE)


@dataclass(frozen=True)
class WatermarkText:
    text: str
    source: WatermarkSource


def clean_model_text(response: str) -> str:
    """First line of the answer without quotes, backticks, label prefixes or a leading article."""
    stripped = response.strip()
    first_line = stripped.splitlines()[0] if stripped else ""
    cleaned = _QUOTES_RE.sub("", first_line.strip())
    cleaned = _LABEL_PREFIX_RE.sub("", cleaned)
    cleaned = _QUOTES_RE.sub("", cleaned.strip())
    return _ARTICLE_RE.sub("", cleaned.strip()).strip()


def fallback_watermark_text(prompt: str) -> str:
    """Up to three title-cased content words from the prompt."""
    words = [
        word for word in re.findall(r"[\w'-]+", prompt.lower())
        if word not in STOP_WORDS and len(word) > 2
    ][:3]
    if words:
        return " ".join(word[:1].upper() + word[1:] for word in words)
    return prompt[:20] + "..." if len(prompt) > 20 else prompt


class WatermarkStage:
    def __init__(self, client: TextGenerationClient | None = None) -> None:
        self.client = client

    async def resolve_text(
        self,
        description: str | None,
        prompt: str | None,
    ) -> WatermarkText | None:
        """Watermark text for a render, or None when there is nothing to stamp.

        A background description is reused as-is and costs no model call.

        Raises:
            WatermarkGenerationFailed: the model call for ``prompt`` failed.
        """
        if description:
            logger.info("Using background description as watermark: %s", description)
            return WatermarkText(description, "background")
        if prompt:
            return await self.generate_text(prompt)
        return None

    async def generate_text(self, prompt: str) -> WatermarkText:
        if self.client is None:
            return WatermarkText(fallback_watermark_text(prompt), "heuristic")

        try:
            response = await self.client.generate(render_prompt("watermark", prompt), task="watermark")
        except ModelUnavailable as e:
            raise WatermarkGenerationFailed(str(e)) from e

        logger.debug("Watermark raw response: %r", response)
        cleaned = clean_model_text(response)
        if 0 < len(cleaned) < MAX_MODEL_TEXT_LENGTH:
            return WatermarkText(cleaned, "model")

        logger.warning("Watermark response unusable (%d chars), using keyword fallback", len(cleaned))
        return WatermarkText(fallback_watermark_text(prompt), "heuristic")


@lru_cache(maxsize=1)
def _font_path() -> str:
    # DejaVu ships with matplotlib, so this resolves without system fonts
    return font_manager.findfont(font_manager.FontProperties(family="DejaVu Sans", weight="bold"))


@lru_cache(maxsize=32)
def _font(size: int) -> ImageFont.FreeTypeFont:
    return ImageFont.truetype(_font_path(), size)


def watermark_font_size(text: str, width: int) -> int:
    max_width = width * WIDTH_FRACTION
    return max(1, round(min(MAX_FONT_PX, max_width / max(len(text), 1) * 2)))


def render_watermark_layer(text: str, width: int, height: int) -> Image.Image:
    """Transparent full-canvas layer with ``text`` rotated near the bottom-right corner."""
    layer = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    if not text.strip():
        return layer

    font = _font(watermark_font_size(text, width))
    left, top, right, bottom = font.getbbox(text, stroke_width=1)
    pad = 2
    stamp = Image.new("RGBA", (right - left + 2 * pad, bottom - top + 2 * pad), (0, 0, 0, 0))
    ImageDraw.Draw(stamp).text(
        (pad - left, pad - top),
        text,
        font=font,
        fill=_FILL,
        stroke_width=1,
        stroke_fill=_STROKE,
    )
    stamp.putalpha(stamp.getchannel("A").point(lambda a: round(a * OPACITY)))
    stamp = stamp.rotate(ROTATION_DEG, resample=Image.Resampling.BICUBIC, expand=True)

    center_x = width - width * WIDTH_FRACTION / 2 - MARGIN_RIGHT
    center_y = height - MARGIN_BOTTOM
    # Plain paste: the layer is empty, so copying alpha is exact
    layer.paste(stamp, (round(center_x - stamp.width / 2), round(center_y - stamp.height / 2)))
    return layer


def draw_watermark(image: Image.Image, text: str) -> Image.Image:
    """Composite the watermark over an RGBA image."""
    return Image.alpha_composite(image, render_watermark_layer(text, image.width, image.height))
