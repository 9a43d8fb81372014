"""LangChain ChatOllama wrapper — streaming chat and single-prompt generation."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Mapping, Sequence

from app.config import settings
from app.engine.errors import ModelUnavailable
from app.llm.model_router import get_model_for_task
from app.models.conversation import ConversationTurn

logger = logging.getLogger(__name__)

TokenCallback = Callable[[str], None]

# Connectivity probe must answer quickly even when llm_timeout_s is large
_PROBE_TIMEOUT_S = 5.0


class TextGenerationClient:
    """Streams tokens from an Ollama server.

    ``chat`` and ``generate`` invoke ``on_token`` for each token in arrival
    order and return the concatenated response. Every call is bounded by
    ``timeout_s``; any backend failure surfaces as ``ModelUnavailable``.
    """

    def __init__(
        self,
        model: str | None = None,
        host: str | None = None,
        timeout_s: float | None = None,
    ) -> None:
        self._model = model
        self.host = host or settings.ollama_host
        self.timeout_s = timeout_s if timeout_s is not None else settings.llm_timeout_s

    @property
    def model(self) -> str:
        return self._model or get_model_for_task("chat")

    def model_for(self, task: str) -> str:
        return self._model or get_model_for_task(task)

    # ── Token streams ──

    async def astream_chat(
        self,
        turns: Sequence[ConversationTurn | Mapping[str, str]],
        task: str = "chat",
    ) -> AsyncIterator[str]:
        from langchain_core.messages import AIMessage, HumanMessage, SystemMessage
        from langchain_ollama import ChatOllama

        llm = ChatOllama(
            model=self.model_for(task),
            base_url=self.host,
            client_kwargs={"timeout": self.timeout_s},
        )

        messages: list = []
        for turn in turns:
            role, content = _role_and_content(turn)
            if role == "system":
                messages.append(SystemMessage(content=content))
            elif role == "user":
                messages.append(HumanMessage(content=content))
            elif role == "assistant":
                messages.append(AIMessage(content=content))

        async for chunk in llm.astream(messages):
            if isinstance(chunk.content, str) and chunk.content:
                yield chunk.content

    async def astream_generate(self, prompt: str, task: str = "chat") -> AsyncIterator[str]:
        from langchain_ollama import OllamaLLM

        llm = OllamaLLM(
            model=self.model_for(task),
            base_url=self.host,
            client_kwargs={"timeout": self.timeout_s},
        )
        async for token in llm.astream(prompt):
            if token:
                yield token

    # ── Collected calls ──

    async def chat(
        self,
        turns: Sequence[ConversationTurn | Mapping[str, str]],
        on_token: TokenCallback | None = None,
        task: str = "chat",
    ) -> str:
        logger.info(
            "Sending chat request to %s with model %s (%d turns)",
            self.host, self.model_for(task), len(turns),
        )
        response = await self._collect(self.astream_chat(turns, task=task), on_token)
        logger.info("Chat completed, response length: %d", len(response))
        return response

    async def generate(
        self,
        prompt: str,
        on_token: TokenCallback | None = None,
        task: str = "chat",
    ) -> str:
        return await self._collect(self.astream_generate(prompt, task=task), on_token)

    async def _collect(self, stream: AsyncIterator[str], on_token: TokenCallback | None) -> str:
        async def consume() -> str:
            parts: list[str] = []
            async for token in stream:
                parts.append(token)
                if on_token is not None:
                    try:
                        on_token(token)
                    except Exception as e:
                        raise _CallbackError(e) from e
            return "".join(parts)

        try:
            return await asyncio.wait_for(consume(), timeout=self.timeout_s)
        except _CallbackError as e:
            # The caller's own failure, not the backend's
            raise e.original
        except asyncio.TimeoutError as e:
            logger.error("Ollama call timed out after %.0fs", self.timeout_s)
            raise ModelUnavailable(f"Ollama did not answer within {self.timeout_s:.0f}s") from e
        except Exception as e:
            logger.error("Ollama call failed: %s", e)
            raise ModelUnavailable(f"Ollama error: {e}") from e

    # ── Backend management ──

    async def check_connection(self) -> bool:
        """True when the server answers and has the configured model."""
        from ollama import AsyncClient

        try:
            response = await asyncio.wait_for(
                AsyncClient(host=self.host).list(), timeout=_PROBE_TIMEOUT_S
            )
        except Exception as e:
            logger.debug("Ollama probe failed: %s", e)
            return False

        base_name = self.model.split(":")[0]
        return any(base_name in (m.model or "") for m in response.models)

    async def pull_model(self) -> None:
        """Make sure the configured model is present on the server. Idempotent."""
        from ollama import AsyncClient

        logger.info("Pulling model %s...", self.model)
        try:
            await AsyncClient(host=self.host).pull(self.model)
        except Exception as e:
            raise ModelUnavailable(f"Could not pull {self.model}: {e}") from e
        logger.info("Model %s pulled successfully", self.model)


class _CallbackError(Exception):
    """Carries an exception raised by ``on_token`` past the backend error mapping."""

    def __init__(self, original: Exception) -> None:
        super().__init__(str(original))
        self.original = original


def _role_and_content(turn: ConversationTurn | Mapping[str, str]) -> tuple[str, str]:
    if isinstance(turn, ConversationTurn):
        return turn.role, turn.content
    return turn.get("role", ""), turn.get("content", "")
