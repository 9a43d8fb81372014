"""Chart specification and render options."""

from __future__ import annotations

from typing import Annotated, Literal, get_args

from pydantic import BaseModel, Field

ChartType = Literal["bar", "line", "pie", "doughnut"]

CHART_TYPES: tuple[str, ...] = get_args(ChartType)
RADIAL_TYPES = ("pie", "doughnut")

DEFAULT_WIDTH = 462
DEFAULT_HEIGHT = 347

# JSON Infinity/NaN are rejected; null marks a missing point
FiniteFloat = Annotated[float, Field(allow_inf_nan=False)]


class Dataset(BaseModel):
    label: str = "Dataset"
    # Length may differ from labels; see Compositor for how gaps are drawn
    data: list[int | FiniteFloat | None] = Field(default_factory=list)
    background_color: str | list[str] | None = None
    border_color: str | list[str] | None = None
    border_width: float | None = None


class ChartSpecification(BaseModel):
    """Everything needed to draw one chart deterministically."""

    type: ChartType = "bar"
    title: str = ""
    labels: list[str] = Field(default_factory=list)
    datasets: list[Dataset] = Field(default_factory=list)

    def is_renderable(self) -> bool:
        """Non-empty labels and at least one non-null data point."""
        return bool(self.labels) and any(
            v is not None for ds in self.datasets for v in ds.data
        )


class RenderOptions(BaseModel):
    width: int = Field(default=DEFAULT_WIDTH, gt=0, le=4096)
    height: int = Field(default=DEFAULT_HEIGHT, gt=0, le=4096)
    background_color: str = "#ffffff"
    background_image_prompt: str | None = None
    # Written back by the background stage; takes precedence over watermark_prompt
    background_description: str | None = None
    watermark_prompt: str | None = None
    title: str | None = None
