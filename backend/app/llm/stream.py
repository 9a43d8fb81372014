"""Streaming chat turns as SSE events."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import AsyncGenerator

from app.engine.errors import ChartPipelineError
from app.engine.pipeline import ChartPipeline, TurnCallbacks
from app.models.chart import ChartSpecification
from app.models.events import StreamEvent

logger = logging.getLogger(__name__)

_DONE = f"event: done\ndata: {json.dumps({'type': 'done'})}\n\n"


async def stream_chat_response(
    pipeline: ChartPipeline,
    message: str,
    message_id: str | None = None,
) -> AsyncGenerator[str, None]:
    """Run one turn and yield its StreamEvents as SSE, in the order they happen.

    Sequence: status, token..., [image, structuredData], closing token with
    ``streaming=false``; or an error event. Always ends with ``done``.
    """
    message_id = message_id or uuid.uuid4().hex
    queue: asyncio.Queue[StreamEvent | None] = asyncio.Queue()

    def emit(**fields) -> None:
        queue.put_nowait(StreamEvent(message_id=message_id, **fields))

    def on_image(image: str, spec: ChartSpecification | None) -> None:
        logger.info("[%s] Chart image generated, size: %d chars", message_id[:8], len(image))
        emit(type="image", content=image, streaming=False)

    callbacks = TurnCallbacks(
        on_token=lambda token: emit(type="token", content=token),
        on_image=on_image,
        on_status=lambda status: emit(type="status", content=status),
    )

    async def run() -> None:
        try:
            result = await pipeline.run_turn(message, callbacks, message_id=message_id)
            if result.specification is not None:
                emit(
                    type="structuredData",
                    specification=result.specification,
                    streaming=False,
                    fallback=result.fallback_used,
                )
            emit(type="token", content="", streaming=False)
        except ChartPipelineError as e:
            emit(type="error", content=str(e), streaming=False)
        except Exception as e:
            logger.exception("[%s] Unexpected error while streaming turn", message_id[:8])
            emit(type="error", content=str(e), streaming=False)
        finally:
            queue.put_nowait(None)

    task = asyncio.create_task(run())
    while (event := await queue.get()) is not None:
        yield event.to_sse()
    await task

    yield _DONE
