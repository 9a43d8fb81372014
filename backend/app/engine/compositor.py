"""Compositor — layered rendering of one chart image.

Layers are drawn in a fixed order that must not change:

1. base background colour fill
2. synthesized background (optional)
3. data visualization, rendered on a transparent figure
4. watermark (optional)

The data layer is drawn with matplotlib's Agg canvas. ``FigureCanvasAgg.draw``
returns only once the frame is complete, and it runs in a worker thread whose
future is the completion signal; pixels are never captured mid-draw.
"""

from __future__ import annotations

import asyncio
import base64
import io
import logging
import math
import re
import threading
from dataclasses import dataclass, field

import numpy as np
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.colors import to_rgba
from matplotlib.figure import Figure
from matplotlib.patches import Patch
from PIL import Image

from app.config import settings
from app.engine.errors import RenderFailure
from app.engine.watermark import draw_watermark
from app.models.chart import RADIAL_TYPES, ChartSpecification, Dataset

logger = logging.getLogger(__name__)

RGBAf = tuple[float, float, float, float]

DPI = 100

PALETTE: tuple[tuple[int, int, int], ...] = (
    (54, 162, 235),
    (255, 99, 132),
    (75, 192, 192),
    (255, 206, 86),
    (153, 102, 255),
    (255, 159, 64),
    (199, 199, 199),
    (83, 102, 255),
)
FILL_ALPHA = 0.8
BORDER_ALPHA = 1.0
DEFAULT_BORDER_WIDTH = 2.0

# Font sizes in pixels
TITLE_PX = 24
LEGEND_PX = 16
TICK_PX = 14

GRID_COLOR: RGBAf = (0.0, 0.0, 0.0, 0.1)

_CSS_RGB_RE = re.compile(
    r"^rgba?\(\s*([\d.]+)\s*,\s*([\d.]+)\s*,\s*([\d.]+)\s*(?:,\s*([\d.]+)\s*)?\)$",
    re.IGNORECASE,
)

# Matplotlib's global state (font cache, text layout) is not thread-safe
_RENDER_LOCK = threading.Lock()


def parse_color(value: str) -> RGBAf:
    """Parse CSS ``rgb()``/``rgba()`` or anything matplotlib understands (hex, names)."""
    match = _CSS_RGB_RE.match(value.strip())
    if match:
        r, g, b = (float(match.group(i)) / 255.0 for i in (1, 2, 3))
        alpha = float(match.group(4)) if match.group(4) is not None else 1.0
        return (r, g, b, alpha)
    return to_rgba(value)


def _to_pil_color(color: RGBAf) -> tuple[int, int, int, int]:
    return tuple(round(channel * 255) for channel in color)  # type: ignore[return-value]


def palette_color(index: int, alpha: float) -> RGBAf:
    r, g, b = PALETTE[index % len(PALETTE)]
    return (r / 255.0, g / 255.0, b / 255.0, alpha)


def _px_to_pt(px: float) -> float:
    return px * 72.0 / DPI


@dataclass
class RenderedDataset:
    label: str
    points: int
    fill_colors: list[RGBAf] = field(default_factory=list)
    border_colors: list[RGBAf] = field(default_factory=list)
    border_width: float = DEFAULT_BORDER_WIDTH


@dataclass
class ChartLayer:
    """Transparent RGBA data layer plus what was actually drawn."""

    image: Image.Image
    datasets: list[RenderedDataset] = field(default_factory=list)


def aligned_values(data: list[int | float | None], length: int) -> list[float]:
    """Values per label slot: null and missing points become NaN, points past the last label are dropped."""
    values = [math.nan if v is None else float(v) for v in data[:length]]
    return values + [math.nan] * (length - len(values))


def _colors(
    override: str | list[str] | None,
    count: int,
    default_index: int | None,
    alpha: float,
) -> list[RGBAf]:
    """``count`` colours: the override if given, else the palette.

    ``default_index`` picks one palette slot for all entries (bar/line);
    None walks the palette by position (pie/doughnut categories).
    """
    if isinstance(override, str):
        return [parse_color(override)] * count
    if isinstance(override, list) and override:
        return [parse_color(override[i % len(override)]) for i in range(count)]
    if default_index is not None:
        return [palette_color(default_index, alpha)] * count
    return [palette_color(i, alpha) for i in range(count)]


def resolve_dataset_style(dataset: Dataset, index: int, chart_type: str, categories: int) -> RenderedDataset:
    """Default colours: one palette colour per dataset, or one per category for radial charts."""
    radial = chart_type in RADIAL_TYPES
    count = categories if radial else 1
    slot = None if radial else index
    return RenderedDataset(
        label=dataset.label,
        points=0,
        fill_colors=_colors(dataset.background_color, count, slot, FILL_ALPHA),
        border_colors=_colors(dataset.border_color, count, slot, BORDER_ALPHA),
        border_width=dataset.border_width or DEFAULT_BORDER_WIDTH,
    )


class Compositor:
    def __init__(self, render_timeout_s: float | None = None) -> None:
        self.render_timeout_s = (
            render_timeout_s if render_timeout_s is not None else settings.render_timeout_s
        )

    async def render_chart(
        self,
        spec: ChartSpecification,
        width: int,
        height: int,
        title: str | None = None,
    ) -> ChartLayer:
        """Render the data layer off the event loop, bounded by ``render_timeout_s``.

        Raises:
            RenderFailure: matplotlib raised, or the render did not finish in time.
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.render_chart_sync, spec, width, height, title),
                timeout=self.render_timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise RenderFailure(f"chart render exceeded {self.render_timeout_s:.0f}s") from e

    def render_chart_sync(
        self,
        spec: ChartSpecification,
        width: int,
        height: int,
        title: str | None = None,
    ) -> ChartLayer:
        try:
            with _RENDER_LOCK:
                return self._draw(spec, width, height, spec.title if title is None else title)
        except RenderFailure:
            raise
        except Exception as e:
            logger.error("Chart render failed: %s", e)
            raise RenderFailure(f"chart render failed: {e}") from e

    def _draw(self, spec: ChartSpecification, width: int, height: int, title: str) -> ChartLayer:
        fig = Figure(figsize=(width / DPI, height / DPI), dpi=DPI, layout="constrained")
        canvas = FigureCanvasAgg(fig)
        fig.patch.set_alpha(0.0)
        ax = fig.add_subplot()
        ax.patch.set_alpha(0.0)

        n_labels = len(spec.labels)
        styles = [
            resolve_dataset_style(ds, i, spec.type, n_labels) for i, ds in enumerate(spec.datasets)
        ]
        series = [aligned_values(ds.data, n_labels) for ds in spec.datasets]
        for style, values in zip(styles, series):
            style.points = sum(1 for v in values if not math.isnan(v))

        if spec.type in RADIAL_TYPES:
            handles = self._draw_radial(ax, spec, styles, series)
        elif spec.type == "line":
            handles = self._draw_line(ax, spec, styles, series)
        else:
            handles = self._draw_bar(ax, spec, styles, series)

        if title:
            ax.set_title(title, fontsize=_px_to_pt(TITLE_PX), fontweight="bold")
        if handles:
            fig.legend(
                handles=handles,
                loc="outside lower center",
                ncol=min(len(handles), 4),
                frameon=False,
                fontsize=_px_to_pt(LEGEND_PX),
            )

        canvas.draw()
        pixels = np.asarray(canvas.buffer_rgba()).copy()
        image = Image.fromarray(pixels)
        if image.size != (width, height):
            image = image.resize((width, height), Image.Resampling.LANCZOS)
        return ChartLayer(image=image, datasets=styles)

    def _style_axes(self, ax, spec: ChartSpecification, series: list[list[float]]) -> None:
        ax.set_xticks(range(len(spec.labels)), spec.labels, fontsize=_px_to_pt(TICK_PX))
        ax.tick_params(axis="y", labelsize=_px_to_pt(TICK_PX))
        ax.grid(True, color=GRID_COLOR)
        ax.set_axisbelow(True)
        for spine in ax.spines.values():
            spine.set_color(GRID_COLOR)
        finite = [v for values in series for v in values if not math.isnan(v)]
        # y axis begins at zero unless the data goes negative
        if finite and min(finite) >= 0:
            ax.set_ylim(bottom=0)

    def _draw_bar(self, ax, spec, styles, series) -> list[Patch]:
        group_width = 0.8
        bar_width = group_width / max(len(series), 1)
        handles = []
        for i, (style, values) in enumerate(zip(styles, series)):
            offset = -group_width / 2 + bar_width * (i + 0.5)
            slots = [(x, v) for x, v in enumerate(values) if not math.isnan(v)]
            if slots:
                ax.bar(
                    [x + offset for x, _ in slots],
                    [v for _, v in slots],
                    width=bar_width,
                    color=style.fill_colors[0],
                    edgecolor=style.border_colors[0],
                    linewidth=_px_to_pt(style.border_width),
                )
            handles.append(Patch(
                facecolor=style.fill_colors[0],
                edgecolor=style.border_colors[0],
                label=style.label,
            ))
        self._style_axes(ax, spec, series)
        return handles

    def _draw_line(self, ax, spec, styles, series) -> list[Patch]:
        handles = []
        for style, values in zip(styles, series):
            ax.plot(
                range(len(values)),
                values,
                color=style.border_colors[0],
                linewidth=_px_to_pt(style.border_width),
                marker="o",
                markerfacecolor=style.fill_colors[0],
                markeredgecolor=style.border_colors[0],
            )
            handles.append(Patch(
                facecolor=style.fill_colors[0],
                edgecolor=style.border_colors[0],
                label=style.label,
            ))
        self._style_axes(ax, spec, series)
        return handles

    def _draw_radial(self, ax, spec, styles, series) -> list[Patch]:
        # Dataset 0 is the outer ring; doughnuts keep a hole of half the radius
        hole = 0.5 if spec.type == "doughnut" else 0.0
        ring = (1.0 - hole) / max(len(series), 1)
        for i, (style, values) in enumerate(zip(styles, series)):
            slices = [0.0 if math.isnan(v) else max(v, 0.0) for v in values]
            if sum(slices) <= 0:
                continue
            wedges = ax.pie(
                slices,
                radius=1.0 - i * ring,
                colors=style.fill_colors,
                startangle=90,
                counterclock=False,
                wedgeprops={"width": ring, "linewidth": _px_to_pt(style.border_width)},
            )[0]
            for wedge, edge in zip(wedges, style.border_colors):
                wedge.set_edgecolor(edge)
        ax.set_aspect("equal")
        ax.axis("off")

        if not styles:
            return []
        first = styles[0]
        return [
            Patch(facecolor=first.fill_colors[j], edgecolor=first.border_colors[j], label=label)
            for j, label in enumerate(spec.labels)
        ]

    def compose(
        self,
        width: int,
        height: int,
        base_color: str,
        background: Image.Image | None = None,
        chart: ChartLayer | None = None,
        watermark_text: str | None = None,
    ) -> Image.Image:
        """Stack the layers in their fixed order.

        Raises:
            RenderFailure: bad base colour or a layer Pillow cannot composite.
        """
        try:
            image = Image.new("RGBA", (width, height), _to_pil_color(parse_color(base_color)))
            if background is not None:
                image = Image.alpha_composite(image, _fit(background, width, height))
            if chart is not None:
                image = Image.alpha_composite(image, _fit(chart.image, width, height))
            if watermark_text:
                image = draw_watermark(image, watermark_text)
        except (ValueError, OSError) as e:
            raise RenderFailure(f"compositing failed: {e}") from e
        return image


def _fit(layer: Image.Image, width: int, height: int) -> Image.Image:
    layer = layer.convert("RGBA")
    if layer.size != (width, height):
        layer = layer.resize((width, height), Image.Resampling.LANCZOS)
    return layer


def encode_png_base64(image: Image.Image) -> str:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("ascii")
