"""Descriptive statistics over small numeric series."""

from __future__ import annotations

import math
from typing import Any, Mapping, Sequence

from .base import BaseTool, Handler
from .errors import InvalidDataError, ToolError, UnknownAnalysisTypeError
from .types import ToolContext

__all__ = [
    "DataAnalyzer",
    "ANALYSIS_TYPES",
    "extract_values",
    "average",
    "median",
    "percentile",
    "standard_deviation",
    "pearson_correlation",
]

ANALYSIS_TYPES = ("trend", "distribution", "correlation", "summary", "outliers")
TREND_THRESHOLD = 5.0
OUTLIER_FACTOR = 1.5


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _rounded(value: float, digits: int = 2) -> float:
    return round(float(value), digits)


def extract_values(data: Sequence[Any]) -> list[float]:
    """Numbers from a list of numbers or ``{"value": n}`` records."""

    values: list[float] = []
    for index, item in enumerate(data):
        value = item.get("value") if isinstance(item, Mapping) else item
        if not _is_number(value):
            raise InvalidDataError(
                message=f"Data point {index} is not a number or a record with a numeric 'value'",
                details={"index": index},
            )
        values.append(float(value))
    return values


def average(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def median(sorted_values: Sequence[float]) -> float:
    mid = len(sorted_values) // 2
    if len(sorted_values) % 2 == 0:
        return (sorted_values[mid - 1] + sorted_values[mid]) / 2
    return sorted_values[mid]


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Linear interpolation between closest ranks, index ``p/100 * (n - 1)``."""

    index = (p / 100) * (len(sorted_values) - 1)
    lower = math.floor(index)
    upper = math.ceil(index)
    weight = index - lower
    return sorted_values[lower] * (1 - weight) + sorted_values[upper] * weight


def standard_deviation(values: Sequence[float]) -> float:
    """Population standard deviation."""

    mean = average(values)
    return math.sqrt(average([(value - mean) ** 2 for value in values]))


def pearson_correlation(xs: Sequence[float], ys: Sequence[float]) -> float:
    n = len(xs)
    sum_x = sum(xs)
    sum_y = sum(ys)
    sum_xy = sum(x * y for x, y in zip(xs, ys))
    sum_x2 = sum(x * x for x in xs)
    sum_y2 = sum(y * y for y in ys)
    numerator = n * sum_xy - sum_x * sum_y
    spread = (n * sum_x2 - sum_x * sum_x) * (n * sum_y2 - sum_y * sum_y)
    if spread <= 0:
        return 0.0
    return numerator / math.sqrt(spread)


# ----------------------------------------------------------------------
# Analyses
# ----------------------------------------------------------------------


def analyze_trend(data: Sequence[Any]) -> dict[str, Any]:
    values = extract_values(data)
    if len(values) < 2:
        return {"trend": "insufficient_data", "dataPoints": len(values)}
    split = len(values) // 2
    first_avg = average(values[:split])
    second_avg = average(values[split:])
    if first_avg == 0:
        # No baseline to express a percentage against; classify by direction.
        percent_change = None
        delta = second_avg - first_avg
        trend = "increasing" if delta > 0 else "decreasing" if delta < 0 else "stable"
    else:
        percent_change = (second_avg - first_avg) / abs(first_avg) * 100
        if percent_change > TREND_THRESHOLD:
            trend = "increasing"
        elif percent_change < -TREND_THRESHOLD:
            trend = "decreasing"
        else:
            trend = "stable"
    return {
        "trend": trend,
        "percentChange": _rounded(percent_change) if percent_change is not None else None,
        "firstPeriodAvg": _rounded(first_avg),
        "secondPeriodAvg": _rounded(second_avg),
        "dataPoints": len(values),
    }


def analyze_distribution(data: Sequence[Any]) -> dict[str, Any]:
    values = extract_values(data)
    ordered = sorted(values)
    mid = median(ordered)
    return {
        "min": ordered[0],
        "max": ordered[-1],
        "median": _rounded(mid),
        "mean": _rounded(average(values)),
        "standardDeviation": _rounded(standard_deviation(values)),
        "range": ordered[-1] - ordered[0],
        "quartiles": {
            "q1": _rounded(percentile(ordered, 25)),
            "q2": _rounded(mid),
            "q3": _rounded(percentile(ordered, 75)),
        },
    }


def analyze_correlation(data: Sequence[Any]) -> dict[str, Any]:
    if len(data) < 2:
        raise InvalidDataError(message="Correlation needs at least two {x, y} points")
    xs: list[float] = []
    ys: list[float] = []
    for index, item in enumerate(data):
        if not isinstance(item, Mapping) or not _is_number(item.get("x")) or not _is_number(item.get("y")):
            raise InvalidDataError(
                message="Invalid data format for correlation: expected {x, y} points",
                details={"index": index},
            )
        xs.append(float(item["x"]))
        ys.append(float(item["y"]))
    r = pearson_correlation(xs, ys)
    strength = abs(r)
    return {
        "correlation": _rounded(r, 3),
        "strength": "strong" if strength > 0.7 else "moderate" if strength > 0.4 else "weak",
        "direction": "positive" if r > 0 else "negative" if r < 0 else "none",
        "dataPoints": len(xs),
    }


def generate_summary(data: Sequence[Any]) -> dict[str, Any]:
    values = extract_values(data)
    return {
        "count": len(values),
        "sum": sum(values),
        "average": _rounded(average(values)),
        "min": min(values),
        "max": max(values),
        "median": _rounded(median(sorted(values))),
    }


def detect_outliers(data: Sequence[Any]) -> dict[str, Any]:
    values = extract_values(data)
    ordered = sorted(values)
    q1 = percentile(ordered, 25)
    q3 = percentile(ordered, 75)
    iqr = q3 - q1
    lower = q1 - OUTLIER_FACTOR * iqr
    upper = q3 + OUTLIER_FACTOR * iqr
    outliers = [value for value in values if value < lower or value > upper]
    return {
        "outliers": outliers,
        "outlierCount": len(outliers),
        "outlierPercentage": _rounded(len(outliers) / len(values) * 100),
        "lowerBound": _rounded(lower),
        "upperBound": _rounded(upper),
    }


_ANALYSES = {
    "trend": analyze_trend,
    "distribution": analyze_distribution,
    "correlation": analyze_correlation,
    "summary": generate_summary,
    "outliers": detect_outliers,
}


class DataAnalyzer(BaseTool):
    """Trend, distribution, correlation, summary and outlier analysis."""

    name = "data_analyzer"
    description = "Analyzes datasets to extract insights, trends, and patterns."
    discriminator = "analysisType"
    parameters = {
        "type": "object",
        "properties": {
            "data": {
                "type": "array",
                "description": "Array of data points to analyze (numbers, {value} records or {x, y} pairs)",
            },
            "analysisType": {
                "type": "string",
                "enum": list(ANALYSIS_TYPES),
                "description": "Type of analysis to perform",
            },
        },
        "required": ["data", "analysisType"],
    }

    def validate(self, params: Mapping[str, Any]) -> None:
        data = params.get("data")
        if not isinstance(data, list) or not data:
            raise InvalidDataError()
        super().validate(params)

    def handlers(self) -> Mapping[str, Handler]:
        return {name: self._bind(name) for name in ANALYSIS_TYPES}

    def unknown_discriminator(self, value: Any) -> ToolError:
        return UnknownAnalysisTypeError.for_value(value)

    @staticmethod
    def _bind(analysis: str) -> Handler:
        analyze = _ANALYSES[analysis]

        def _run(params: Mapping[str, Any], context: ToolContext) -> dict[str, Any]:
            return analyze(params["data"])

        return _run
