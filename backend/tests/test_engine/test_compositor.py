"""Tests for chart rendering and layer compositing."""

from __future__ import annotations

import asyncio
import math

import numpy as np
import pytest

from app.engine.background import plan_background, render_background
from app.engine.compositor import (
    BORDER_ALPHA,
    FILL_ALPHA,
    PALETTE,
    Compositor,
    aligned_values,
    encode_png_base64,
    palette_color,
    parse_color,
    resolve_dataset_style,
)
from app.engine.errors import RenderFailure
from app.models.chart import ChartSpecification, Dataset


@pytest.fixture
def compositor() -> Compositor:
    return Compositor(render_timeout_s=30)


def test_parse_css_colors():
    assert parse_color("rgba(54, 162, 235, 0.8)") == pytest.approx((54 / 255, 162 / 255, 235 / 255, 0.8))
    assert parse_color("rgb(255, 0, 0)") == pytest.approx((1.0, 0.0, 0.0, 1.0))
    assert parse_color("#00ff00") == pytest.approx((0.0, 1.0, 0.0, 1.0))
    assert parse_color("white") == pytest.approx((1.0, 1.0, 1.0, 1.0))


def test_palette_cycles():
    assert palette_color(len(PALETTE), 1.0) == palette_color(0, 1.0)


def test_aligned_values_pads_and_truncates():
    padded = aligned_values([1, 2], 4)
    assert padded[:2] == [1.0, 2.0]
    assert all(math.isnan(v) for v in padded[2:])
    assert aligned_values([1, 2, 3, 4, 5], 3) == [1.0, 2.0, 3.0]


def test_bar_datasets_get_distinct_palette_colors():
    first = resolve_dataset_style(Dataset(data=[1]), 0, "bar", 3)
    second = resolve_dataset_style(Dataset(data=[1]), 1, "bar", 3)
    assert first.fill_colors == [palette_color(0, FILL_ALPHA)]
    assert first.border_colors == [palette_color(0, BORDER_ALPHA)]
    assert second.fill_colors != first.fill_colors
    assert first.border_width == 2.0


def test_pie_colors_per_category():
    style = resolve_dataset_style(Dataset(data=[1, 2, 3]), 0, "pie", 3)
    assert style.fill_colors == [palette_color(i, FILL_ALPHA) for i in range(3)]


def test_explicit_colors_win():
    dataset = Dataset(data=[1, 2], background_color="#ff0000", border_color=["#000000"], border_width=4)
    style = resolve_dataset_style(dataset, 0, "doughnut", 2)
    assert style.fill_colors == [(1.0, 0.0, 0.0, 1.0)] * 2
    assert style.border_colors == [(0.0, 0.0, 0.0, 1.0)] * 2
    assert style.border_width == 4


@pytest.mark.parametrize("chart_type", ["bar", "line", "pie", "doughnut"])
def test_every_type_renders_every_label(compositor, chart_type):
    spec = ChartSpecification(
        type=chart_type,
        title="Title",
        labels=["a", "b", "c", "d"],
        datasets=[Dataset(label="one", data=[4, 3, 2, 1]), Dataset(label="two", data=[1, 2, 3, 4])],
    )
    layer = compositor.render_chart_sync(spec, 462, 347)
    assert layer.image.size == (462, 347)
    assert layer.image.mode == "RGBA"
    assert [ds.points for ds in layer.datasets] == [4, 4]
    # transparent outside the drawing
    assert layer.image.getpixel((0, 0))[3] == 0
    assert np.asarray(layer.image)[..., 3].max() > 0


def test_short_dataset_leaves_gaps(compositor):
    spec = ChartSpecification(
        type="line",
        labels=["a", "b", "c", "d"],
        datasets=[Dataset(data=[1, 2]), Dataset(data=[1, 2, 3, 4, 5, 6])],
    )
    layer = compositor.render_chart_sync(spec, 300, 200)
    assert [ds.points for ds in layer.datasets] == [2, 4]


def test_negative_bars_render(compositor):
    spec = ChartSpecification(type="bar", labels=["a", "b"], datasets=[Dataset(data=[-5, 10])])
    assert compositor.render_chart_sync(spec, 200, 150).datasets[0].points == 2


def test_render_chart_async(compositor, pie_spec):
    layer = asyncio.run(compositor.render_chart(pie_spec, 320, 240, title="Override"))
    assert layer.image.size == (320, 240)


def test_render_timeout_is_render_failure(bar_spec):
    with pytest.raises(RenderFailure):
        asyncio.run(Compositor(render_timeout_s=0).render_chart(bar_spec, 462, 347))


def test_bad_color_is_render_failure(compositor):
    spec = ChartSpecification(
        type="bar", labels=["a"], datasets=[Dataset(data=[1], background_color="not-a-colour")]
    )
    with pytest.raises(RenderFailure):
        compositor.render_chart_sync(spec, 200, 150)
    with pytest.raises(RenderFailure):
        compositor.compose(100, 100, "not-a-colour")


def test_base_fill_only(compositor):
    image = compositor.compose(50, 40, "#ff0000")
    assert image.size == (50, 40)
    assert image.getpixel((25, 20)) == (255, 0, 0, 255)


def test_chart_layer_always_above_background(compositor):
    spec = ChartSpecification(
        type="bar",
        title="Revenue",
        labels=["a", "b", "c"],
        datasets=[Dataset(data=[3, 5, 4], background_color="#36a2eb", border_color="#36a2eb")],
    )
    layer = compositor.render_chart_sync(spec, 462, 347)
    background = render_background(plan_background("blue gradient"), 462, 347)

    plain = np.asarray(compositor.compose(462, 347, "#ffffff", chart=layer)).astype(int)
    layered = np.asarray(
        compositor.compose(462, 347, "#ffffff", background=background, chart=layer)
    ).astype(int)

    chart_alpha = np.asarray(layer.image)[..., 3]
    opaque = chart_alpha == 255
    empty = chart_alpha == 0
    assert opaque.any()
    # Opaque chart pixels hide whatever is underneath
    assert np.abs(plain[opaque] - layered[opaque]).max() <= 1
    # The background shows through where the chart draws nothing
    assert (plain[empty] != layered[empty]).any()


def test_watermark_drawn_last(compositor, bar_spec):
    layer = compositor.render_chart_sync(bar_spec, 462, 347)
    without = np.asarray(compositor.compose(462, 347, "#ffffff", chart=layer))
    with_mark = np.asarray(compositor.compose(462, 347, "#ffffff", chart=layer, watermark_text="Sales"))
    assert (without != with_mark).any()
    # top-left stays clear of the watermark
    assert (without[:40, :40] == with_mark[:40, :40]).all()


def test_png_encoding(compositor, png):
    encoded = encode_png_base64(compositor.compose(64, 48, "#ffffff"))
    image = png(encoded)
    assert image.format == "PNG"
    assert image.size == (64, 48)


def test_null_points_become_gaps(compositor):
    values = aligned_values([1, None, 3], 3)
    assert values[0] == 1.0 and values[2] == 3.0
    assert math.isnan(values[1])

    spec = ChartSpecification(
        type="line",
        labels=["a", "b", "c"],
        datasets=[Dataset(data=[1, None, 3]), Dataset(data=[None, 2, 2])],
    )
    layer = compositor.render_chart_sync(spec, 300, 200)
    assert [ds.points for ds in layer.datasets] == [2, 2]


def test_null_slice_skipped_in_pie(compositor):
    spec = ChartSpecification(type="pie", labels=["a", "b", "c"], datasets=[Dataset(data=[5, None, 5])])
    assert compositor.render_chart_sync(spec, 200, 200).datasets[0].points == 2
