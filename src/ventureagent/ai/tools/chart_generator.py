"""Declarative chart specifications.

Nothing is rendered here: the generator returns the data together with a
merged options tree that a front end can hand to its charting library.
"""

from __future__ import annotations

import copy
from typing import Any, Mapping, Sequence

from .base import BaseTool, Handler
from .errors import InvalidDataError, ToolError, UnknownChartTypeError
from .types import ToolContext

__all__ = ["ChartGenerator", "CHART_TYPES", "DEFAULT_OPTIONS", "deep_merge", "infer_keys"]

CHART_TYPES = ("line", "bar", "pie", "scatter", "area")

_AXES_FROM_ZERO = {
    "x": {"display": True},
    "y": {"display": True, "beginAtZero": True},
}

DEFAULT_OPTIONS: dict[str, dict[str, Any]] = {
    "line": {
        "responsive": True,
        "legend": {"display": True, "position": "top"},
        "scales": _AXES_FROM_ZERO,
        "elements": {"line": {"tension": 0.3}, "point": {"radius": 3}},
    },
    "bar": {
        "responsive": True,
        "legend": {"display": True, "position": "top"},
        "scales": _AXES_FROM_ZERO,
    },
    "pie": {
        "responsive": True,
        "legend": {"display": True, "position": "bottom"},
    },
    "scatter": {
        "responsive": True,
        "legend": {"display": False},
        "scales": {"x": {"display": True, "type": "linear"}, "y": {"display": True}},
    },
    "area": {
        "responsive": True,
        "legend": {"display": True, "position": "top"},
        "scales": _AXES_FROM_ZERO,
        "elements": {"line": {"tension": 0.3, "fill": True}},
    },
}

_PREFERRED_KEYS: dict[str, tuple[str, str]] = {
    "pie": ("label", "value"),
    "scatter": ("x", "y"),
}
_DEFAULT_KEYS = ("x", "y")


def deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge ``overrides`` into a copy of ``base``; override values win."""

    merged = copy.deepcopy(dict(base))
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def infer_keys(chart_type: str, data: Sequence[Any]) -> tuple[str | None, str | None]:
    """Pick the category and value keys from the first record."""

    first = data[0]
    if not isinstance(first, Mapping):
        return None, None
    preferred_x, preferred_y = _PREFERRED_KEYS.get(chart_type, _DEFAULT_KEYS)
    keys = list(first.keys())
    x_key = preferred_x if preferred_x in first else None
    y_key = preferred_y if preferred_y in first else None
    if y_key is None:
        y_key = "value" if "value" in first else next(
            (key for key in keys if key != x_key and _is_number(first[key])), None
        )
    if x_key is None:
        x_key = next((key for key in keys if key != y_key and not _is_number(first[key])), None)
        if x_key is None:
            x_key = next((key for key in keys if key != y_key), None)
    return x_key, y_key


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ChartGenerator(BaseTool):
    """Build chart specifications for line, bar, pie, scatter and area charts."""

    name = "chart_generator"
    description = "Generates chart specifications (line, bar, pie, scatter, area) from data for visualization."
    discriminator = "chartType"
    parameters = {
        "type": "object",
        "properties": {
            "data": {
                "type": "array",
                "description": "Data points to plot",
            },
            "chartType": {
                "type": "string",
                "enum": list(CHART_TYPES),
                "description": "Type of chart to generate",
            },
            "options": {
                "type": "object",
                "description": "Chart options merged over the defaults for the chart type",
            },
            "title": {
                "type": "string",
                "description": "Optional chart title",
            },
        },
        "required": ["data", "chartType"],
    }

    def validate(self, params: Mapping[str, Any]) -> None:
        data = params.get("data")
        if not isinstance(data, list) or not data:
            raise InvalidDataError()
        super().validate(params)

    def handlers(self) -> Mapping[str, Handler]:
        return {chart_type: self.build for chart_type in CHART_TYPES}

    def unknown_discriminator(self, value: Any) -> ToolError:
        return UnknownChartTypeError.for_value(value)

    def build(self, params: Mapping[str, Any], context: ToolContext | None = None) -> dict[str, Any]:
        chart_type = params["chartType"]
        data = list(params["data"])
        overrides = dict(params.get("options") or {})
        x_key, y_key = infer_keys(chart_type, data)
        x_key = overrides.pop("xKey", x_key)
        y_key = overrides.pop("yKey", y_key)
        options = deep_merge(DEFAULT_OPTIONS[chart_type], overrides)
        title = params.get("title") or options.get("title")
        return {
            "type": chart_type,
            "data": data,
            "options": options,
            "x_key": x_key,
            "y_key": y_key,
            "title": title,
        }
