"""TurnContext — per-request state tracked while one turn moves through the pipeline.

Created per ``run_turn`` call and discarded with it; nothing here outlives the
request.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field

from app.models.chart import ChartSpecification

logger = logging.getLogger(__name__)


class Stage(str, enum.Enum):
    RECEIVED = "received"
    CLASSIFIED = "classified"
    EXTRACTION = "specification-extraction"
    COMPLETION = "plain-completion"
    BACKGROUND = "background-synthesis"
    RENDERING = "rendering"
    WATERMARK = "watermark"
    EMITTED = "emitted"
    FAILED = "failed"


TERMINAL_STAGES = frozenset({Stage.EMITTED, Stage.FAILED})


@dataclass
class TurnResult:
    """What a turn hands back to the caller.

    ``fallback_used`` marks a chart built from illustrative sample data rather
    than the model's answer. ``watermark_source`` is "heuristic" when the
    watermark text was guessed locally.
    """

    message_id: str
    text: str
    specification: ChartSpecification | None = None
    image_base64: str | None = None
    fallback_used: bool = False
    background_description: str | None = None
    watermark_text: str | None = None
    watermark_source: str | None = None

    @property
    def has_image(self) -> bool:
        return self.image_base64 is not None


@dataclass
class TurnContext:
    message_id: str
    text: str
    stage: Stage = Stage.RECEIVED
    is_chart: bool = False
    response: str = ""
    specification: ChartSpecification | None = None
    fallback_used: bool = False
    error: str = ""
    stages: list[Stage] = field(default_factory=lambda: [Stage.RECEIVED])
    started_at: float = field(default_factory=time.perf_counter)

    def advance(self, stage: Stage) -> None:
        if self.stage in TERMINAL_STAGES:
            raise RuntimeError(f"turn {self.message_id} already {self.stage.value}")
        self.stage = stage
        self.stages.append(stage)
        logger.debug("[%s] → %s", self.message_id[:8], stage.value)

    def fail(self, error: Exception) -> None:
        self.error = str(error)
        self.advance(Stage.FAILED)
        logger.warning("[%s] turn failed: %s", self.message_id[:8], error)

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started_at) * 1000
