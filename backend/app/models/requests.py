"""API request models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from app.models.chart import ChartSpecification, RenderOptions


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, description="User's message")


class ChartRequest(BaseModel):
    type: Literal["data", "ai"] = Field(..., description="Render given data, or ask the model for it")
    specification: ChartSpecification | None = Field(
        default=None, description="Chart to render when type is 'data'"
    )
    options: RenderOptions = Field(default_factory=RenderOptions)
    prompt: str | None = Field(default=None, description="Natural-language request when type is 'ai'")
