"""Financial calculator tool.

Every calculation is a pure function over the ``inputs`` object. Each one
returns the computed figure, a status derived from fixed thresholds and a
display string under ``result``. Result keys use the backend's camelCase
spelling because they are forwarded to the model verbatim.
"""

from __future__ import annotations

import math
from typing import Any, Mapping

from .base import BaseTool, Handler, validate_schema
from .errors import InvalidParameterError, ToolError, UnknownCalculationError
from .types import ToolContext

__all__ = [
    "FinancialCalculator",
    "CALCULATIONS",
    "DEFAULT_GROSS_MARGIN",
    "calculate_valuation",
    "calculate_runway",
    "calculate_burn_rate",
    "calculate_roi",
    "calculate_dscr",
    "calculate_ltv",
    "calculate_cac",
    "calculate_clv",
]

CALCULATIONS = ("valuation", "runway", "burn_rate", "roi", "dscr", "ltv", "cac", "clv")
DEFAULT_GROSS_MARGIN = 0.7

_NUMBER = {"type": "number"}
_POSITIVE = {"type": "number", "exclusiveMinimum": 0}


def _inputs_schema(required: Mapping[str, Any], optional: Mapping[str, Any] | None = None) -> dict[str, Any]:
    properties = dict(required)
    properties.update(optional or {})
    return {"type": "object", "properties": properties, "required": list(required)}


INPUT_SCHEMAS: dict[str, dict[str, Any]] = {
    "valuation": _inputs_schema(
        {"revenue": _NUMBER, "multiple": _NUMBER},
        {"method": {"type": "string"}},
    ),
    "runway": _inputs_schema({"cash": _NUMBER, "monthlyBurn": _NUMBER}),
    "burn_rate": _inputs_schema(
        {"expenses": _NUMBER, "revenue": _NUMBER},
        {"period": _POSITIVE},
    ),
    "roi": _inputs_schema({"investment": _NUMBER, "returns": _NUMBER}),
    "dscr": _inputs_schema({"operatingIncome": _NUMBER, "debtService": _NUMBER}),
    "ltv": _inputs_schema({"loanAmount": _NUMBER, "collateralValue": _NUMBER}),
    "cac": _inputs_schema({"marketingSpend": _NUMBER, "customersAcquired": _NUMBER}),
    "clv": _inputs_schema(
        {"avgRevenue": _NUMBER, "avgLifetime": _NUMBER},
        {"grossMargin": {"type": "number", "minimum": 0, "maximum": 1}, "cac": _POSITIVE},
    ),
}


def _nonzero(inputs: Mapping[str, Any], key: str) -> float:
    value = float(inputs[key])
    if value == 0:
        raise InvalidParameterError(
            message=f"'{key}' must not be zero",
            details={"parameter": key},
        )
    return value


def _amount(value: float) -> str:
    text = f"{value:,.2f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"${text}"


# ----------------------------------------------------------------------
# Calculations
# ----------------------------------------------------------------------


def calculate_valuation(inputs: Mapping[str, Any]) -> dict[str, Any]:
    method = inputs.get("method", "revenue_multiple")
    if method != "revenue_multiple":
        return {"error": "Valuation method not implemented", "method": method}
    revenue = float(inputs["revenue"])
    multiple = float(inputs["multiple"])
    valuation = revenue * multiple
    return {
        "valuation": valuation,
        "method": "Revenue Multiple",
        "assumptions": f"{multiple:g}x revenue multiple",
        "result": _amount(valuation),
    }


def calculate_runway(inputs: Mapping[str, Any]) -> dict[str, Any]:
    runway = float(inputs["cash"]) / _nonzero(inputs, "monthlyBurn")
    months = math.floor(runway)
    if runway < 6:
        status, recommendation = "critical", "Start fundraising immediately"
    elif runway < 12:
        status, recommendation = "warning", "Begin fundraising conversations"
    else:
        status, recommendation = "healthy", "Good runway, focus on growth"
    return {
        "runway": runway,
        "runwayMonths": months,
        "status": status,
        "recommendation": recommendation,
        "result": f"{months} months",
    }


def calculate_burn_rate(inputs: Mapping[str, Any]) -> dict[str, Any]:
    period = float(inputs.get("period") or 1)
    burn = (float(inputs["expenses"]) - float(inputs["revenue"])) / period
    if burn > 100_000:
        status = "high"
    elif burn > 50_000:
        status = "moderate"
    else:
        status = "low"
    return {
        "burnRate": burn,
        "monthlyBurn": burn,
        "annualBurn": burn * 12,
        "status": status,
        "result": f"{_amount(burn)}/month",
    }


def calculate_roi(inputs: Mapping[str, Any]) -> dict[str, Any]:
    investment = _nonzero(inputs, "investment")
    returns = float(inputs["returns"])
    roi = (returns - investment) / investment * 100
    if roi > 100:
        status = "excellent"
    elif roi > 50:
        status = "good"
    elif roi > 0:
        status = "positive"
    else:
        status = "negative"
    return {
        "roi": roi,
        "multiple": returns / investment,
        "status": status,
        "result": f"{roi:.2f}%",
    }


def calculate_dscr(inputs: Mapping[str, Any]) -> dict[str, Any]:
    dscr = float(inputs["operatingIncome"]) / _nonzero(inputs, "debtService")
    if dscr > 1.25:
        status = "healthy"
    elif dscr > 1.0:
        status = "acceptable"
    else:
        status = "risky"
    recommendation = (
        "Consider restructuring debt or increasing income" if dscr < 1.25 else "Debt coverage is adequate"
    )
    return {
        "dscr": dscr,
        "status": status,
        "recommendation": recommendation,
        "result": f"{dscr:.2f}",
    }


def calculate_ltv(inputs: Mapping[str, Any]) -> dict[str, Any]:
    ltv = float(inputs["loanAmount"]) / _nonzero(inputs, "collateralValue") * 100
    if ltv > 80:
        status = "high_risk"
    elif ltv > 60:
        status = "moderate"
    else:
        status = "low_risk"
    recommendation = (
        "Consider reducing loan amount or increasing collateral" if ltv > 80 else "LTV within acceptable range"
    )
    return {
        "ltv": ltv,
        "status": status,
        "recommendation": recommendation,
        "result": f"{ltv:.1f}%",
    }


def calculate_cac(inputs: Mapping[str, Any]) -> dict[str, Any]:
    cac = float(inputs["marketingSpend"]) / _nonzero(inputs, "customersAcquired")
    return {
        "cac": cac,
        "annualCAC": cac * 12,
        "result": f"${cac:.2f}",
    }


def calculate_clv(inputs: Mapping[str, Any]) -> dict[str, Any]:
    margin = inputs.get("grossMargin")
    margin = DEFAULT_GROSS_MARGIN if margin is None else float(margin)
    clv = float(inputs["avgRevenue"]) * float(inputs["avgLifetime"]) * margin
    cac = inputs.get("cac")
    ratio = clv / float(cac) if cac else None
    return {
        "clv": clv,
        "grossMargin": margin,
        "clvCacRatio": ratio,
        "status": "healthy" if ratio is not None and ratio > 3 else "needs_improvement",
        "result": f"${clv:.2f}",
    }


_CALCULATORS = {
    "valuation": calculate_valuation,
    "runway": calculate_runway,
    "burn_rate": calculate_burn_rate,
    "roi": calculate_roi,
    "dscr": calculate_dscr,
    "ltv": calculate_ltv,
    "cac": calculate_cac,
    "clv": calculate_clv,
}


class FinancialCalculator(BaseTool):
    """Closed-form startup and lending metrics."""

    name = "financial_calculator"
    description = (
        "Performs financial calculations including valuation, runway, burn rate, ROI, DSCR, LTV, CAC and CLV."
    )
    discriminator = "calculation"
    parameters = {
        "type": "object",
        "properties": {
            "calculation": {
                "type": "string",
                "enum": list(CALCULATIONS),
                "description": "Type of calculation to perform",
            },
            "inputs": {
                "type": "object",
                "description": "Input parameters for the calculation",
            },
        },
        "required": ["calculation", "inputs"],
    }

    def handlers(self) -> Mapping[str, Handler]:
        return {name: self._bind(name) for name in CALCULATIONS}

    def unknown_discriminator(self, value: Any) -> ToolError:
        return UnknownCalculationError.for_value(value)

    @staticmethod
    def _bind(calculation: str) -> Handler:
        compute = _CALCULATORS[calculation]

        def _run(params: Mapping[str, Any], context: ToolContext) -> dict[str, Any]:
            inputs = params["inputs"]
            validate_schema(INPUT_SCHEMAS[calculation], inputs, label=f"{calculation} inputs")
            return compute(inputs)

        return _run
