"""Pipeline orchestrator — classifies each turn and sequences model calls, fallback and rendering."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from app.config import settings
from app.engine.chart_generator import ChartGenerator
from app.engine.context import Stage, TurnContext, TurnResult
from app.engine.errors import ExtractionFailed, ModelUnavailable, RenderFailure
from app.engine.extractor import extract_chart_specification
from app.engine.fallback import fallback_chart
from app.engine.intent import extract_background_prompt, extract_watermark_prompt, is_chart_request
from app.llm.client import TextGenerationClient
from app.llm.prompts import render_prompt
from app.models.chart import ChartSpecification, RenderOptions
from app.models.conversation import ConversationHistory, ConversationTurn

logger = logging.getLogger(__name__)


@dataclass
class TurnCallbacks:
    """Progress hooks. Called on the event loop, in order, never concurrently."""

    on_token: Callable[[str], None] | None = None
    on_image: Callable[[str, ChartSpecification | None], None] | None = None
    on_complete: Callable[[str], None] | None = None
    on_status: Callable[[str], None] | None = None

    def status(self, message: str) -> None:
        if self.on_status:
            self.on_status(message)


class ChartPipeline:
    """One shared instance serves every caller.

    Turns are serialized by a per-instance lock, so the shared history only
    ever sees complete user/assistant pairs. Callers wanting their own
    conversation pass a ``ConversationHistory`` to ``run_turn``.
    """

    def __init__(
        self,
        client: TextGenerationClient | None = None,
        generator: ChartGenerator | None = None,
        history: ConversationHistory | None = None,
    ) -> None:
        self.client = client or TextGenerationClient()
        self.generator = generator or ChartGenerator(self.client)
        self.history = history if history is not None else self.new_history()
        self._lock = asyncio.Lock()

    @staticmethod
    def new_history(max_turns: int | None = None) -> ConversationHistory:
        return ConversationHistory(
            render_prompt("system", ""),
            max_turns=max_turns or settings.history_max_turns,
        )

    @property
    def model(self) -> str:
        return self.client.model

    async def check_connection(self) -> bool:
        return await self.client.check_connection()

    async def ensure_model(self) -> None:
        await self.client.pull_model()

    def clear_history(self) -> None:
        self.history.clear()

    async def run_turn(
        self,
        text: str,
        callbacks: TurnCallbacks | None = None,
        history: ConversationHistory | None = None,
        message_id: str | None = None,
    ) -> TurnResult:
        """Answer one user message, rendering a chart when it asks for one.

        Raises:
            ModelUnavailable: the model call failed; the user turn stays in history.
            RenderFailure: the compositor failed; no image is emitted.
        """
        callbacks = callbacks or TurnCallbacks()
        if history is None:
            history = self.history
        ctx = TurnContext(message_id=message_id or uuid.uuid4().hex, text=text)

        async with self._lock:
            history.append("user", text)
            ctx.is_chart = is_chart_request(text)
            ctx.advance(Stage.CLASSIFIED)
            logger.info("[%s] Chart request detected: %s for %.50r", ctx.message_id[:8], ctx.is_chart, text)
            callbacks.status("Thinking...")

            try:
                if ctx.is_chart:
                    result = await self._chart_turn(ctx, callbacks)
                else:
                    result = await self._plain_turn(ctx, history, callbacks)
            except ModelUnavailable as e:
                ctx.fail(e)
                history.trim()
                raise
            except RenderFailure as e:
                # The model did answer; keep its text so the next turn has context
                history.append("assistant", ctx.response)
                history.trim()
                ctx.fail(e)
                raise

            history.append("assistant", ctx.response)
            dropped = history.trim()
            if dropped:
                logger.debug("History trimmed by %d turns", dropped)

        ctx.advance(Stage.EMITTED)
        if callbacks.on_complete:
            callbacks.on_complete(ctx.response)
        logger.info("[%s] Turn completed in %.0fms", ctx.message_id[:8], ctx.elapsed_ms)
        return result

    async def _plain_turn(
        self,
        ctx: TurnContext,
        history: ConversationHistory,
        callbacks: TurnCallbacks,
    ) -> TurnResult:
        ctx.advance(Stage.COMPLETION)
        ctx.response = await self.client.chat(history.turns(), on_token=callbacks.on_token, task="chat")
        return TurnResult(message_id=ctx.message_id, text=ctx.response)

    async def _chart_turn(self, ctx: TurnContext, callbacks: TurnCallbacks) -> TurnResult:
        ctx.advance(Stage.EXTRACTION)
        # The chart call sees only the chart prompt and this message, not the history
        messages = [
            ConversationTurn(role="system", content=render_prompt("chart", ctx.text)),
            ConversationTurn(role="user", content=ctx.text),
        ]
        ctx.response = await self.client.chat(messages, on_token=callbacks.on_token, task="chart")
        logger.debug("[%s] Chart response:\n%s", ctx.message_id[:8], ctx.response)

        callbacks.status("Generating chart...")
        result = await self._render_request(ctx, ctx.text)
        if callbacks.on_image:
            callbacks.on_image(result.image_base64, result.specification)
        return result

    async def _render_request(self, ctx: TurnContext, request_text: str) -> TurnResult:
        """Extract (or fall back), then render with background/watermark prompts from the request."""
        try:
            ctx.specification = extract_chart_specification(ctx.response)
        except ExtractionFailed as e:
            logger.warning("[%s] %s; using fallback chart", ctx.message_id[:8], e)
            ctx.specification = fallback_chart(request_text)
            ctx.fallback_used = True

        options = RenderOptions(
            width=settings.chart_width,
            height=settings.chart_height,
            title=ctx.specification.title,
            watermark_prompt=extract_watermark_prompt(request_text),
            background_image_prompt=extract_background_prompt(request_text),
        )
        rendered = await self.generator.generate(ctx.specification, options, on_stage=ctx.advance)
        return TurnResult(
            message_id=ctx.message_id,
            text=ctx.response,
            specification=ctx.specification,
            image_base64=rendered.image_base64,
            fallback_used=ctx.fallback_used,
            background_description=rendered.background_description,
            watermark_text=rendered.watermark.text if rendered.watermark else None,
            watermark_source=rendered.watermark.source if rendered.watermark else None,
        )

    async def generate_from_specification(
        self,
        spec: ChartSpecification,
        options: RenderOptions | None = None,
    ) -> str:
        """Direct path for callers that already hold a structured chart. Returns base64 PNG."""
        options = options or RenderOptions(width=settings.chart_width, height=settings.chart_height)
        rendered = await self.generator.generate(spec, options)
        return rendered.image_base64

    async def generate_ai_chart(
        self,
        prompt: str,
        on_token: Callable[[str], None] | None = None,
        message_id: str | None = None,
    ) -> TurnResult:
        """Single-prompt chart generation outside the conversation. Same fallback policy as chat turns."""
        ctx = TurnContext(message_id=message_id or uuid.uuid4().hex, text=prompt, is_chart=True)
        ctx.advance(Stage.CLASSIFIED)
        ctx.advance(Stage.EXTRACTION)
        try:
            ctx.response = await self.client.generate(
                render_prompt("chart", prompt), on_token=on_token, task="chart"
            )
            result = await self._render_request(ctx, prompt)
        except (ModelUnavailable, RenderFailure) as e:
            ctx.fail(e)
            raise
        ctx.advance(Stage.EMITTED)
        return result


def create_pipeline(client: TextGenerationClient | None = None) -> ChartPipeline:
    """Factory function for creating a pipeline instance."""
    return ChartPipeline(client=client)
