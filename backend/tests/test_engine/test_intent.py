"""Tests for the keyword heuristics over user text."""

from __future__ import annotations

import pytest

from app.engine.intent import extract_background_prompt, extract_watermark_prompt, is_chart_request


@pytest.mark.parametrize("text", [
    "Create a bar chart of sales by quarter",
    "Can you plot revenue over time?",
    "show me the numbers",
    "Please VISUALIZE this",
    "draw a histogram of ages",
])
def test_chart_requests_detected(text):
    assert is_chart_request(text)


@pytest.mark.parametrize("text", [
    "Hello there",
    "What were sales per quarter?",
    "Explain gradient descent",
])
def test_plain_messages_not_detected(text):
    assert not is_chart_request(text)


def test_keyword_false_positive_is_expected():
    # Substring matching: "show me" triggers even without data
    assert is_chart_request("show me a joke")


def test_background_prompt_after_with():
    prompt = extract_background_prompt("Create a pie chart with a blue gradient background")
    assert prompt == "a blue gradient background"


def test_background_prompt_after_colon():
    prompt = extract_background_prompt("Draw a line graph of revenue, background: soft green")
    assert prompt == "soft green"


def test_background_prompt_absent_without_trigger():
    assert extract_background_prompt("Create a bar chart of sales") is None


def test_background_prompt_too_short_is_none():
    assert extract_background_prompt("bg chart") is None


def test_watermark_prompt_strips_chart_words():
    assert extract_watermark_prompt("Create a pie chart of quarterly sales") == "quarterly sales"


def test_watermark_prompt_caps_at_five_words():
    prompt = extract_watermark_prompt("show revenue profit margin growth churn retention cohorts")
    assert prompt.split() == ["revenue", "profit", "margin", "growth", "churn"]


def test_watermark_prompt_falls_back_to_prefix():
    assert extract_watermark_prompt("show me a pie") == "show me a pie"[:15]
