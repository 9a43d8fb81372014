"""Health check + meta endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.dependencies import get_pipeline
from app.engine.pipeline import ChartPipeline
from app.models.responses import HealthResponse, ModelStatus, StatusResponse

router = APIRouter()

_VERSION = "0.1.0"

_TOOLS = [
    {
        "name": "generate_data_chart",
        "description": "Generate a chart from structured data",
        "parameters": {
            "type": "object",
            "properties": {
                "chartType": {"type": "string", "enum": ["bar", "line", "pie", "doughnut"]},
                "data": {"type": "object"},
                "options": {"type": "object"},
            },
        },
    },
    {
        "name": "generate_ai_chart",
        "description": "Generate a chart from natural language description",
        "parameters": {
            "type": "object",
            "properties": {"prompt": {"type": "string"}},
        },
    },
]


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(status="ok", version=_VERSION)


@router.get("/status", response_model=StatusResponse)
async def status(pipeline: ChartPipeline = Depends(get_pipeline)) -> StatusResponse:
    available = await pipeline.check_connection()
    return StatusResponse(
        server="connected",
        model=ModelStatus(host=pipeline.client.host, name=pipeline.model, available=available),
    )


@router.get("/prompts")
async def prompts() -> dict[str, dict[str, str]]:
    from app.llm.prompts import get_all_templates, get_prompt_metadata

    return {
        task: {**get_prompt_metadata(task), "template": template}
        for task, template in get_all_templates().items()
    }


@router.get("/tools")
async def tools() -> dict[str, list[dict]]:
    return {"tools": _TOOLS}
