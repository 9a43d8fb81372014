"""Tests for the text-generation client wrapper (no Ollama server needed)."""

from __future__ import annotations

import asyncio

import pytest

from app.config import settings
from app.engine.errors import ModelUnavailable
from app.llm.client import TextGenerationClient, _role_and_content
from app.llm.model_router import get_model_for_task
from app.models.conversation import ConversationTurn


class ScriptedStream(TextGenerationClient):
    def __init__(self, tokens, error=None, delay_s=0.0, timeout_s=1.0):
        super().__init__(model="test-model", host="http://ollama.test:11434", timeout_s=timeout_s)
        self.tokens = tokens
        self.error = error
        self.delay_s = delay_s

    async def astream_chat(self, turns, task="chat"):
        for token in self.tokens:
            if self.delay_s:
                await asyncio.sleep(self.delay_s)
            yield token
        if self.error:
            raise self.error

    async def astream_generate(self, prompt, task="chat"):
        async for token in self.astream_chat([], task):
            yield token


def test_chat_collects_tokens_in_order():
    client = ScriptedStream(["Hel", "lo", " world"])
    seen: list[str] = []
    answer = asyncio.run(client.chat([{"role": "user", "content": "hi"}], on_token=seen.append))
    assert answer == "Hello world"
    assert seen == ["Hel", "lo", " world"]


def test_generate_collects_tokens():
    assert asyncio.run(ScriptedStream(["a", "b"]).generate("prompt")) == "ab"


def test_stream_error_is_model_unavailable():
    client = ScriptedStream(["partial"], error=ConnectionError("refused"))
    with pytest.raises(ModelUnavailable, match="refused"):
        asyncio.run(client.chat([]))


def test_timeout_is_model_unavailable():
    client = ScriptedStream(["slow"], delay_s=1.0, timeout_s=0.05)
    with pytest.raises(ModelUnavailable, match="did not answer"):
        asyncio.run(client.generate("prompt"))


def test_role_and_content_accepts_turns_and_dicts():
    assert _role_and_content(ConversationTurn(role="user", content="x")) == ("user", "x")
    assert _role_and_content({"role": "assistant", "content": "y"}) == ("assistant", "y")
    assert _role_and_content({}) == ("", "")


def test_decor_model_routing(monkeypatch):
    monkeypatch.setattr(settings, "ollama_model", "big:7b")
    monkeypatch.setattr(settings, "model_decor", "")
    assert get_model_for_task("watermark") == "big:7b"

    monkeypatch.setattr(settings, "model_decor", "tiny:1b")
    assert get_model_for_task("background") == "tiny:1b"
    assert get_model_for_task("chart") == "big:7b"
    assert get_model_for_task("unknown") == "big:7b"

    client = TextGenerationClient()
    assert client.model == "big:7b"
    assert client.model_for("watermark") == "tiny:1b"


def test_explicit_model_overrides_routing(monkeypatch):
    monkeypatch.setattr(settings, "model_decor", "tiny:1b")
    client = TextGenerationClient(model="pinned:3b")
    assert client.model_for("watermark") == "pinned:3b"


def test_unreachable_server_reports_unavailable():
    client = TextGenerationClient(host="http://127.0.0.1:1")
    assert asyncio.run(client.check_connection()) is False


def test_callback_error_not_reported_as_model_failure():
    def broken(token):
        raise RuntimeError("client gone")

    with pytest.raises(RuntimeError, match="client gone") as excinfo:
        asyncio.run(ScriptedStream(["a", "b"]).chat([], on_token=broken))
    assert not isinstance(excinfo.value, ModelUnavailable)
