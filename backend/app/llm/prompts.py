"""Prompt templates per task, with a version tag for each."""

from __future__ import annotations

_SYSTEM_TEMPLATE = """You are a helpful AI assistant that can engage in conversations and create data visualizations.

When a user asks for a chart or visualization:
1. Analyze their request to understand the data and chart type needed
2. Generate a JSON specification for the chart
3. Wrap the JSON in ```json code blocks

For chart requests, always respond with a valid JSON structure like this:
```json
{
  "type": "bar",
  "title": "Chart Title",
  "labels": ["Label1", "Label2", "Label3"],
  "datasets": [
    {
      "label": "Dataset Name",
      "data": [10, 20, 30]
    }
  ]
}
```

Supported chart types: bar, line, pie, doughnut

For regular conversations, respond naturally and helpfully."""

_CHART_TEMPLATE = """You are a data visualization expert. Generate ONLY a JSON specification for a chart.

CRITICAL: Your response MUST be ONLY valid JSON wrapped in ```json code blocks. Do NOT include any explanatory text before or after the JSON.

Required JSON structure:
```json
{{
  "type": "bar|line|pie|doughnut",
  "title": "Descriptive Chart Title",
  "labels": ["category1", "category2", "category3"],
  "datasets": [
    {{
      "label": "Dataset Name",
      "data": [10, 20, 30]
    }}
  ]
}}
```

Rules:
1. If user mentions "pie" or "doughnut", use that type
2. If user mentions "line" or "trend", use "line"
3. If user mentions "bar" or "comparison", use "bar"
4. If no specific data provided, create realistic sample data (5-8 data points)
5. Labels and data arrays must have the same length
6. Use descriptive titles based on the user's request
7. Note: Background images can be requested by including "with background" or "background image" in the request

User request: {request}

Generate ONLY the JSON code block, nothing else."""

_BACKGROUND_TEMPLATE = """Describe a subtle, professional background image for a data chart based on: "{request}".
Respond with 2-3 words describing colors, patterns, or themes (e.g., "blue gradient", "light grid", "subtle texture").
Respond with ONLY the description, no explanations."""

_WATERMARK_TEMPLATE = """Based on this chart request: "{request}", generate a short watermark text (2-5 words) that visually represents the main theme or subject.
Make it descriptive and meaningful. Respond with ONLY the watermark text, no explanations, quotes, or markdown formatting."""

_TEMPLATES = {
    "system": _SYSTEM_TEMPLATE,
    "chart": _CHART_TEMPLATE,
    "background": _BACKGROUND_TEMPLATE,
    "watermark": _WATERMARK_TEMPLATE,
}

PROMPT_VERSIONS = {
    "system": "v1.0.0",
    "chart": "v1.0.2",
    "background": "v1.0.0",
    "watermark": "v1.0.0",
}


def get_prompt_template(task: str) -> str:
    return _TEMPLATES.get(task, _SYSTEM_TEMPLATE)


def render_prompt(task: str, request: str) -> str:
    """Fill a request-bearing template. The system template takes no arguments."""
    template = get_prompt_template(task)
    if task == "system":
        return template
    return template.format(request=request)


def get_all_templates() -> dict[str, str]:
    """Return all prompt templates keyed by task name."""
    return dict(_TEMPLATES)


def get_prompt_metadata(task: str) -> dict[str, str]:
    version = PROMPT_VERSIONS.get(task, "unknown")
    return {"type": task, "version": version, "id": f"{task}-{version}"}
