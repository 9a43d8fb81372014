"""POST /api/chart — render a given specification, or ask the model for one."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException

from app.dependencies import get_pipeline
from app.engine.errors import ModelUnavailable, RenderFailure
from app.engine.pipeline import ChartPipeline
from app.models.requests import ChartRequest
from app.models.responses import ChartResponse

router = APIRouter()


@router.post("/chart", response_model=ChartResponse)
async def generate_chart(
    req: ChartRequest,
    pipeline: ChartPipeline = Depends(get_pipeline),
) -> ChartResponse:
    try:
        if req.type == "data":
            if req.specification is None or not req.specification.is_renderable():
                raise HTTPException(
                    status_code=400,
                    detail="specification needs non-empty labels and at least one dataset with data",
                )
            image = await pipeline.generate_from_specification(req.specification, req.options)
            return ChartResponse(
                message_id=uuid.uuid4().hex,
                image=image,
                specification=req.specification,
            )

        if not req.prompt or not req.prompt.strip():
            raise HTTPException(status_code=400, detail="prompt is required when type is 'ai'")
        result = await pipeline.generate_ai_chart(req.prompt)
    except ModelUnavailable as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
    except RenderFailure as e:
        raise HTTPException(status_code=500, detail=str(e)) from e

    return ChartResponse(
        message_id=result.message_id,
        image=result.image_base64 or "",
        specification=result.specification,
        fallback_used=result.fallback_used,
    )
