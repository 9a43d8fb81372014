"""Failure taxonomy for the chart pipeline.

Optional stages (background, watermark) degrade: their errors are caught and
logged inside the pipeline. Mandatory stages (the model call, the compositor)
surface their errors to the caller. ``ExtractionFailed`` is always recovered
by the fallback chart.
"""

from __future__ import annotations


class ChartPipelineError(Exception):
    """Base class for all pipeline errors."""


class ExtractionFailed(ChartPipelineError):
    """No valid chart specification could be read from the model output."""


class BackgroundSynthesisFailed(ChartPipelineError):
    """The background description could not be obtained."""


class WatermarkGenerationFailed(ChartPipelineError):
    """The watermark phrase model call failed."""


class ModelUnavailable(ChartPipelineError):
    """The text-generation backend failed or timed out."""


class RenderFailure(ChartPipelineError):
    """The compositor could not produce an image."""
