"""Chart generator — one specification in, one base64 PNG out.

Drives the optional background and watermark stages around the compositor.
Failures in those optional stages are logged and the layer is skipped; only
``RenderFailure`` escapes.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from app.engine.background import BackgroundSynthesizer
from app.engine.compositor import ChartLayer, Compositor, encode_png_base64
from app.engine.context import Stage
from app.engine.errors import BackgroundSynthesisFailed, WatermarkGenerationFailed
from app.engine.watermark import WatermarkStage, WatermarkText
from app.models.chart import ChartSpecification, RenderOptions

if TYPE_CHECKING:
    from PIL import Image

    from app.llm.client import TextGenerationClient

logger = logging.getLogger(__name__)


@dataclass
class RenderResult:
    image_base64: str
    chart: ChartLayer
    background_description: str | None = None
    watermark: WatermarkText | None = None


class ChartGenerator:
    def __init__(
        self,
        client: TextGenerationClient | None = None,
        compositor: Compositor | None = None,
        background: BackgroundSynthesizer | None = None,
        watermark: WatermarkStage | None = None,
    ) -> None:
        self.compositor = compositor or Compositor()
        self.background = background or BackgroundSynthesizer(client)
        self.watermark = watermark or WatermarkStage(client)

    async def generate(
        self,
        spec: ChartSpecification,
        options: RenderOptions,
        on_stage: Callable[[Stage], None] | None = None,
    ) -> RenderResult:
        """Render ``spec``. Writes ``options.background_description`` back when a background is drawn."""
        width, height = options.width, options.height

        background_layer: Image.Image | None = None
        if options.background_image_prompt:
            if on_stage:
                on_stage(Stage.BACKGROUND)
            try:
                background_layer, options.background_description = await self.background.synthesize(
                    options.background_image_prompt, width, height
                )
            except BackgroundSynthesisFailed as e:
                logger.warning(
                    "Background synthesis failed, keeping solid %s: %s", options.background_color, e
                )

        if on_stage:
            on_stage(Stage.RENDERING)
        title = options.title if options.title is not None else spec.title
        chart_layer = await self.compositor.render_chart(spec, width, height, title=title)

        if on_stage:
            on_stage(Stage.WATERMARK)
        watermark: WatermarkText | None = None
        try:
            watermark = await self.watermark.resolve_text(
                options.background_description, options.watermark_prompt
            )
        except WatermarkGenerationFailed as e:
            logger.warning("Watermark omitted: %s", e)

        image = self.compositor.compose(
            width,
            height,
            options.background_color,
            background=background_layer,
            chart=chart_layer,
            watermark_text=watermark.text if watermark else None,
        )
        encoded = encode_png_base64(image)
        logger.info(
            "Chart image generated: %s, %dx%d, %d chars (background=%s, watermark=%s)",
            spec.type, width, height, len(encoded),
            "yes" if background_layer is not None else "no",
            watermark.source if watermark else "none",
        )
        return RenderResult(
            image_base64=encoded,
            chart=chart_layer,
            background_description=options.background_description,
            watermark=watermark,
        )
