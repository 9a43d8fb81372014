"""API response models."""

from __future__ import annotations

from pydantic import BaseModel, Field

from app.models.chart import ChartSpecification


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"


class ModelStatus(BaseModel):
    host: str
    name: str
    available: bool = False


class StatusResponse(BaseModel):
    server: str = "connected"
    model: ModelStatus


class ChatResponse(BaseModel):
    message_id: str
    answer: str
    image: str | None = Field(default=None, description="Base64 PNG when the turn produced a chart")
    specification: ChartSpecification | None = None
    fallback_used: bool = False


class ChartResponse(BaseModel):
    message_id: str
    image: str
    specification: ChartSpecification | None = None
    fallback_used: bool = False


class HistoryResponse(BaseModel):
    cleared: bool = True
    turns: int = 1
