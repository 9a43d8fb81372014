"""ChartChat chart generation engine."""

from app.engine.errors import (
    BackgroundSynthesisFailed,
    ChartPipelineError,
    ExtractionFailed,
    ModelUnavailable,
    RenderFailure,
    WatermarkGenerationFailed,
)

__all__ = [
    "ChartPipelineError",
    "ExtractionFailed",
    "BackgroundSynthesisFailed",
    "WatermarkGenerationFailed",
    "ModelUnavailable",
    "RenderFailure",
]
