"""Tests for the financial calculator tool."""

from __future__ import annotations

from typing import Any

import pytest

from ventureagent.ai.tools import (
    FinancialCalculator,
    InvalidParameterError,
    ToolContext,
    UnknownCalculationError,
)
from ventureagent.ai.tools.financial_calculator import calculate_clv, calculate_runway


async def _run(context: ToolContext, calculation: str, **inputs: Any) -> dict[str, Any]:
    return await FinancialCalculator().execute({"calculation": calculation, "inputs": inputs}, context)


# -----------------------------------------------------------------------------
# Runway
# -----------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("cash", "status", "months"),
    [(50_000, "critical", 5), (60_000, "warning", 6), (119_000, "warning", 11), (120_000, "healthy", 12)],
)
def test_runway_thresholds(cash: float, status: str, months: int) -> None:
    result = calculate_runway({"cash": cash, "monthlyBurn": 10_000})

    assert result["status"] == status
    assert result["runwayMonths"] == months
    assert result["result"] == f"{months} months"


def test_runway_recommendations() -> None:
    assert calculate_runway({"cash": 1, "monthlyBurn": 1})["recommendation"] == "Start fundraising immediately"
    assert calculate_runway({"cash": 24, "monthlyBurn": 1})["recommendation"] == "Good runway, focus on growth"


@pytest.mark.asyncio
async def test_runway_zero_burn_is_invalid(tool_context: ToolContext) -> None:
    with pytest.raises(InvalidParameterError) as excinfo:
        await _run(tool_context, "runway", cash=1000, monthlyBurn=0)

    assert excinfo.value.details == {"parameter": "monthlyBurn"}


# -----------------------------------------------------------------------------
# Other calculations
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_valuation_revenue_multiple(tool_context: ToolContext) -> None:
    result = await _run(tool_context, "valuation", revenue=1_000_000, multiple=5, method="revenue_multiple")

    assert result["valuation"] == 5_000_000
    assert result["method"] == "Revenue Multiple"
    assert result["assumptions"] == "5x revenue multiple"
    assert result["result"] == "$5,000,000"


@pytest.mark.asyncio
async def test_valuation_other_methods_not_implemented(tool_context: ToolContext) -> None:
    result = await _run(tool_context, "valuation", revenue=1, multiple=1, method="dcf")

    assert result["error"] == "Valuation method not implemented"


@pytest.mark.asyncio
async def test_burn_rate(tool_context: ToolContext) -> None:
    result = await _run(tool_context, "burn_rate", expenses=150_000, revenue=30_000)

    assert result["burnRate"] == 120_000
    assert result["annualBurn"] == 1_440_000
    assert result["status"] == "high"
    assert result["result"] == "$120,000/month"


@pytest.mark.asyncio
async def test_burn_rate_over_period(tool_context: ToolContext) -> None:
    result = await _run(tool_context, "burn_rate", expenses=180_000, revenue=0, period=3)

    assert result["monthlyBurn"] == 60_000
    assert result["status"] == "moderate"


@pytest.mark.asyncio
async def test_burn_rate_zero_period_rejected_by_schema(tool_context: ToolContext) -> None:
    with pytest.raises(InvalidParameterError):
        await _run(tool_context, "burn_rate", expenses=1, revenue=0, period=0)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("returns", "status"),
    [(250, "excellent"), (160, "good"), (110, "positive"), (100, "negative"), (40, "negative")],
)
async def test_roi_status(tool_context: ToolContext, returns: float, status: str) -> None:
    result = await _run(tool_context, "roi", investment=100, returns=returns)

    assert result["status"] == status


@pytest.mark.asyncio
async def test_roi_values(tool_context: ToolContext) -> None:
    result = await _run(tool_context, "roi", investment=100, returns=250)

    assert result["roi"] == pytest.approx(150.0)
    assert result["multiple"] == pytest.approx(2.5)
    assert result["result"] == "150.00%"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("income", "status", "recommendation"),
    [
        (150_000, "healthy", "Debt coverage is adequate"),
        (110_000, "acceptable", "Consider restructuring debt or increasing income"),
        (90_000, "risky", "Consider restructuring debt or increasing income"),
    ],
)
async def test_dscr(tool_context: ToolContext, income: float, status: str, recommendation: str) -> None:
    result = await _run(tool_context, "dscr", operatingIncome=income, debtService=100_000)

    assert result["status"] == status
    assert result["recommendation"] == recommendation


@pytest.mark.asyncio
@pytest.mark.parametrize(("loan", "status"), [(85_000, "high_risk"), (70_000, "moderate"), (50_000, "low_risk")])
async def test_ltv(tool_context: ToolContext, loan: float, status: str) -> None:
    result = await _run(tool_context, "ltv", loanAmount=loan, collateralValue=100_000)

    assert result["status"] == status
    assert result["result"] == f"{loan / 1000:.1f}%"


@pytest.mark.asyncio
async def test_cac(tool_context: ToolContext) -> None:
    result = await _run(tool_context, "cac", marketingSpend=10_000, customersAcquired=50)

    assert result == {"cac": 200.0, "annualCAC": 2400.0, "result": "$200.00"}


def test_clv_default_margin_and_healthy_ratio() -> None:
    result = calculate_clv({"avgRevenue": 100, "avgLifetime": 12, "cac": 200})

    assert result["clv"] == pytest.approx(840.0)
    assert result["grossMargin"] == 0.7
    assert result["clvCacRatio"] == pytest.approx(4.2)
    assert result["status"] == "healthy"


def test_clv_without_cac_needs_improvement() -> None:
    result = calculate_clv({"avgRevenue": 100, "avgLifetime": 12, "grossMargin": 0.5})

    assert result["clv"] == pytest.approx(600.0)
    assert result["clvCacRatio"] is None
    assert result["status"] == "needs_improvement"


# -----------------------------------------------------------------------------
# Dispatch and validation
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_unknown_calculation(tool_context: ToolContext) -> None:
    with pytest.raises(UnknownCalculationError, match="Unknown calculation type: irr"):
        await _run(tool_context, "irr", cash=1)


@pytest.mark.asyncio
async def test_missing_inputs_are_reported(tool_context: ToolContext) -> None:
    with pytest.raises(InvalidParameterError) as excinfo:
        await _run(tool_context, "runway", monthlyBurn=1000)

    assert any("cash" in violation for violation in excinfo.value.violations)
    assert excinfo.value.to_dict()["error"] == "invalid_parameter"


@pytest.mark.asyncio
async def test_non_numeric_input_rejected(tool_context: ToolContext) -> None:
    with pytest.raises(InvalidParameterError):
        await _run(tool_context, "roi", investment="a lot", returns=5)


@pytest.mark.asyncio
async def test_inputs_object_is_required(tool_context: ToolContext) -> None:
    with pytest.raises(InvalidParameterError):
        await FinancialCalculator().execute({"calculation": "roi"}, tool_context)


def test_tool_definition() -> None:
    definition = FinancialCalculator().get_tool()

    assert definition.name == "financial_calculator"
    assert definition.parameters["properties"]["calculation"]["enum"] == [
        "valuation",
        "runway",
        "burn_rate",
        "roi",
        "dscr",
        "ltv",
        "cac",
        "clv",
    ]
