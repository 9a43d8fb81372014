"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import base64
import io
from collections.abc import AsyncIterator, Mapping, Sequence

import pytest
from PIL import Image

from app.llm.client import TextGenerationClient
from app.models.chart import ChartSpecification, Dataset
from app.models.conversation import ConversationTurn


# Model answers used across the suites

FENCED_BAR_RESPONSE = '''Here is your chart:
```json
{
  "type": "bar",
  "title": "Quarterly Sales",
  "labels": ["Q1", "Q2", "Q3", "Q4"],
  "datasets": [
    {"label": "Sales", "data": [120, 150, 90, 180]}
  ]
}
```
Let me know if you want changes.'''

PIE_RESPONSE = '''```json
{"type": "pie", "title": "Market Share", "labels": ["Alpha", "Beta", "Gamma"],
 "datasets": [{"label": "Share", "data": [50, 30, 20]}]}
```'''

PLAIN_ANSWER = "Hello! How can I help you today?"


class FakeTextClient(TextGenerationClient):
    """Scripted stand-in for Ollama: no network, answers by task, records every call.

    ``responses`` maps task → full answer, streamed back in small chunks.
    Tasks listed in ``fail_tasks`` raise from inside the stream, the way a
    dropped connection would.
    """

    def __init__(
        self,
        responses: Mapping[str, str] | None = None,
        fail_tasks: Sequence[str] = (),
        delay_s: float = 0.0,
        available: bool = True,
    ) -> None:
        super().__init__(model="fake-model:latest", host="http://ollama.test:11434", timeout_s=5.0)
        self.responses = dict(responses or {})
        self.fail_tasks = set(fail_tasks)
        self.delay_s = delay_s
        self.available = available
        self.calls: list[tuple[str, str, object]] = []
        self.active = 0
        self.max_active = 0

    def tasks(self) -> list[str]:
        return [task for _, task, _ in self.calls]

    async def _stream(self, task: str) -> AsyncIterator[str]:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if task in self.fail_tasks:
                raise ConnectionError("connection refused")
            text = self.responses.get(task, "")
            for i in range(0, len(text), 8):
                if self.delay_s:
                    await asyncio.sleep(self.delay_s)
                yield text[i:i + 8]
        finally:
            self.active -= 1

    async def astream_chat(
        self,
        turns: Sequence[ConversationTurn | Mapping[str, str]],
        task: str = "chat",
    ) -> AsyncIterator[str]:
        self.calls.append(("chat", task, list(turns)))
        async for token in self._stream(task):
            yield token

    async def astream_generate(self, prompt: str, task: str = "chat") -> AsyncIterator[str]:
        self.calls.append(("generate", task, prompt))
        async for token in self._stream(task):
            yield token

    async def check_connection(self) -> bool:
        return self.available

    async def pull_model(self) -> None:
        self.calls.append(("pull", "", self.model))


def decode_png(encoded: str) -> Image.Image:
    return Image.open(io.BytesIO(base64.b64decode(encoded)))


@pytest.fixture
def scripted() -> dict[str, str]:
    """Default answer per task; copy and override for a single test."""
    return {
        "chat": PLAIN_ANSWER,
        "chart": FENCED_BAR_RESPONSE,
        "background": "Blue Gradient",
        "watermark": "Quarterly Sales",
    }


@pytest.fixture
def make_client():
    return FakeTextClient


@pytest.fixture
def fake_client(scripted) -> FakeTextClient:
    return FakeTextClient(responses=scripted)


@pytest.fixture
def png():
    return decode_png


@pytest.fixture
def bar_spec() -> ChartSpecification:
    return ChartSpecification(
        type="bar",
        title="Quarterly Sales",
        labels=["Q1", "Q2", "Q3", "Q4"],
        datasets=[
            Dataset(label="2023", data=[120, 150, 90, 180]),
            Dataset(label="2024", data=[130, 160, 110, 200]),
        ],
    )


@pytest.fixture
def pie_spec() -> ChartSpecification:
    return ChartSpecification(
        type="pie",
        title="Market Share",
        labels=["Alpha", "Beta", "Gamma"],
        datasets=[Dataset(label="Share", data=[50, 30, 20])],
    )


@pytest.fixture
def pie_response() -> str:
    return PIE_RESPONSE
