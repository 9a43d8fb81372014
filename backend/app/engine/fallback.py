"""Offline fallback chart for when no specification can be extracted.

The output is illustrative sample data chosen by keyword, never an answer to
the user's actual numbers. Callers flag results built from it
(``TurnResult.fallback_used``) so it is never presented as a model answer.
"""

from __future__ import annotations

from app.models.chart import ChartSpecification, Dataset

FALLBACK_TITLE = "Generated Chart"
FALLBACK_DATASET_LABEL = "Sample Data"

# (keyword, labels, values), first match wins
_LABEL_BUCKETS: tuple[tuple[str, tuple[str, ...], tuple[int, ...]], ...] = (
    ("month", ("Jan", "Feb", "Mar", "Apr", "May"), (25, 30, 20, 15, 10)),
    ("quarter", ("Q1", "Q2", "Q3", "Q4"), (30, 35, 28, 32)),
    ("product", ("Product 1", "Product 2", "Product 3", "Product 4", "Product 5"), (25, 30, 20, 15, 10)),
)
_GENERIC_LABELS = ("Category A", "Category B", "Category C", "Category D", "Category E")
_GENERIC_VALUES = (25, 30, 20, 15, 10)


def fallback_chart_type(text: str) -> str:
    lowered = text.lower()
    if "pie" in lowered:
        return "pie"
    if "doughnut" in lowered:
        return "doughnut"
    if "line" in lowered or "trend" in lowered:
        return "line"
    return "bar"


def fallback_chart(text: str) -> ChartSpecification:
    """Build a deterministic sample chart from keywords in ``text``. Always renderable."""
    lowered = text.lower()
    labels, values = _GENERIC_LABELS, _GENERIC_VALUES
    for keyword, bucket_labels, bucket_values in _LABEL_BUCKETS:
        if keyword in lowered:
            labels, values = bucket_labels, bucket_values
            break

    return ChartSpecification(
        type=fallback_chart_type(text),
        title=FALLBACK_TITLE,
        labels=list(labels),
        datasets=[Dataset(label=FALLBACK_DATASET_LABEL, data=list(values))],
    )
