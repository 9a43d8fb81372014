"""Chart specification extraction from free-form model output.

``extract_chart_specification`` is the whole interface: text in, a valid
``ChartSpecification`` out, or ``ExtractionFailed``. No partial results.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from app.engine.errors import ExtractionFailed
from app.models.chart import CHART_TYPES, ChartSpecification, Dataset

logger = logging.getLogger(__name__)

# Tried in order; the first candidate that parses as a JSON object wins
_CANDIDATE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"```json\s*([\s\S]*?)\s*```"),
    re.compile(r"```\s*([\s\S]*?)\s*```"),
    re.compile(r"\{[\s\S]*\"labels\"[\s\S]*\"datasets\"[\s\S]*\}"),
    re.compile(r"\{[\s\S]{20,}\}"),
)

# Keyword → type when the object has no usable "type"; checked in this order
_TYPE_KEYWORDS: tuple[str, ...] = ("pie", "line", "bar")


def extract_chart_specification(text: str) -> ChartSpecification:
    """Parse a chart specification out of ``text``.

    Raises:
        ExtractionFailed: no candidate parses, or the parsed object lacks
            labels or data.
    """
    parsed = _find_json_object(text)
    if parsed is None:
        logger.warning("No JSON object found in response (%d chars)", len(text))
        raise ExtractionFailed("no structured chart object in model output")

    try:
        spec = _build_specification(parsed, text)
    except (ValidationError, TypeError, ValueError) as e:
        logger.warning("Chart object rejected: %s", e)
        raise ExtractionFailed(f"invalid chart object: {e}") from e

    if not spec.is_renderable():
        logger.warning(
            "Missing required data: %d labels, %d datasets",
            len(spec.labels), len(spec.datasets),
        )
        raise ExtractionFailed("chart object has no labels or no data")

    logger.info(
        "Parsed %s chart: %d labels, %d datasets",
        spec.type, len(spec.labels), len(spec.datasets),
    )
    return spec


def _find_json_object(text: str) -> dict[str, Any] | None:
    for pattern in _CANDIDATE_PATTERNS:
        match = pattern.search(text)
        if match is None:
            continue
        candidate = match.group(1) if match.groups() else match.group(0)
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            logger.debug("Candidate for %s is not JSON: %.80s", pattern.pattern, candidate)
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def _build_specification(parsed: dict[str, Any], text: str) -> ChartSpecification:
    labels = parsed.get("labels")
    if not isinstance(labels, list) or not all(isinstance(label, str) for label in labels):
        labels = []

    datasets: list[Dataset] = []
    raw_datasets = parsed.get("datasets")
    if isinstance(raw_datasets, list):
        for raw in raw_datasets:
            if not isinstance(raw, dict):
                raise TypeError(f"dataset entry is {type(raw).__name__}, expected object")
            data = raw.get("data")
            datasets.append(Dataset(
                label=str(raw.get("label") or "Dataset"),
                data=data if isinstance(data, list) else [],
            ))
    elif isinstance(parsed.get("data"), list):
        datasets.append(Dataset(label=str(parsed.get("label") or "Data"), data=parsed["data"]))

    return ChartSpecification(
        type=_resolve_type(parsed.get("type"), text),
        title=str(parsed.get("title") or ""),
        labels=labels,
        datasets=datasets,
    )


def _resolve_type(explicit: Any, text: str) -> str:
    if isinstance(explicit, str) and explicit.strip().lower() in CHART_TYPES:
        return explicit.strip().lower()
    lowered = text.lower()
    for keyword in _TYPE_KEYWORDS:
        if keyword in lowered:
            return keyword
    return "bar"
