"""Stream events emitted while a turn runs, consumed by the transport."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

from app.models.chart import ChartSpecification

EventType = Literal["token", "image", "structuredData", "status", "error"]


class StreamEvent(BaseModel):
    type: EventType
    message_id: str
    content: str = ""
    streaming: bool = True
    specification: ChartSpecification | None = None
    # True when the chart is the offline illustrative fallback
    fallback: bool = False

    def to_sse(self) -> str:
        return f"event: {self.type}\ndata: {self.model_dump_json(exclude_none=True)}\n\n"
