"""Task → model selection. The primary model answers and writes chart JSON, the decor model writes short phrases."""

from __future__ import annotations

from app.config import settings

_TASK_MODEL_MAP = {
    "chat": "primary",
    "chart": "primary",
    "background": "decor",
    "watermark": "decor",
}


def get_model_for_task(task: str) -> str:
    tier = _TASK_MODEL_MAP.get(task, "primary")
    if tier == "decor" and settings.model_decor:
        return settings.model_decor
    return settings.ollama_model
