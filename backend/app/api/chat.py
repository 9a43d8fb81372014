"""POST /api/chat — one conversational turn (standard + streaming), DELETE /api/history."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from app.dependencies import get_pipeline
from app.engine.errors import ModelUnavailable, RenderFailure
from app.engine.pipeline import ChartPipeline
from app.models.requests import ChatRequest
from app.models.responses import ChatResponse, HistoryResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/chat", response_model=ChatResponse)
async def chat(req: ChatRequest, pipeline: ChartPipeline = Depends(get_pipeline)) -> ChatResponse:
    try:
        result = await pipeline.run_turn(req.message)
    except ModelUnavailable as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
    except RenderFailure as e:
        raise HTTPException(status_code=500, detail=str(e)) from e

    return ChatResponse(
        message_id=result.message_id,
        answer=result.text,
        image=result.image_base64,
        specification=result.specification,
        fallback_used=result.fallback_used,
    )


@router.post("/chat/stream")
async def chat_stream(req: ChatRequest, pipeline: ChartPipeline = Depends(get_pipeline)) -> StreamingResponse:
    from app.llm.stream import stream_chat_response

    return StreamingResponse(
        stream_chat_response(pipeline, req.message),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.delete("/history", response_model=HistoryResponse)
async def clear_history(pipeline: ChartPipeline = Depends(get_pipeline)) -> HistoryResponse:
    pipeline.clear_history()
    logger.info("Conversation history cleared")
    return HistoryResponse(cleared=True, turns=len(pipeline.history))
