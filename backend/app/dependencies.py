"""FastAPI dependency injection."""

from __future__ import annotations

from functools import lru_cache

from app.config import settings
from app.engine.pipeline import ChartPipeline, create_pipeline


def get_settings():
    return settings


@lru_cache(maxsize=1)
def get_pipeline() -> ChartPipeline:
    """The single shared pipeline (and conversation) for the process."""
    return create_pipeline()
