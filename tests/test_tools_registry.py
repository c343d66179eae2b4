"""Tests for the role-gated tool registry."""

from __future__ import annotations

from typing import Any, Mapping

import pytest

from ventureagent.ai.ai_types import UserType
from ventureagent.ai.tools import (
    DEFAULT_ROLE_TOOLS,
    DataAnalyzer,
    DuplicateToolError,
    FinancialCalculator,
    RegistryIntegrityError,
    ToolContext,
    ToolDefinition,
    ToolRegistry,
)


async def _echo(params: Mapping[str, Any], context: ToolContext) -> dict[str, Any]:
    return {"echo": dict(params), "user": context.user_id}


def _echo_definition(name: str = "echo") -> ToolDefinition:
    return ToolDefinition(
        name=name,
        description="Echo the parameters back",
        parameters={"type": "object", "properties": {}},
        executor=_echo,
    )


def test_default_registry_holds_four_tools() -> None:
    registry = ToolRegistry()

    names = [tool.name for tool in registry.get_all_tools()]

    assert names == ["financial_calculator", "data_analyzer", "document_processor", "chart_generator"]


@pytest.mark.parametrize(
    ("user_type", "expected"),
    [
        ("entrepreneur", ["financial_calculator", "data_analyzer", "document_processor", "chart_generator"]),
        ("investor", ["financial_calculator", "data_analyzer", "document_processor", "chart_generator"]),
        ("lender", ["financial_calculator", "data_analyzer", "document_processor"]),
        ("grantor", ["data_analyzer", "document_processor", "chart_generator"]),
        ("partner", ["data_analyzer", "chart_generator"]),
        ("admin", ["financial_calculator", "data_analyzer", "document_processor", "chart_generator"]),
    ],
)
def test_tools_for_each_role(user_type: str, expected: list[str]) -> None:
    registry = ToolRegistry()

    assert [tool.name for tool in registry.get_tools_for_user_type(user_type)] == expected


def test_enum_roles_are_accepted() -> None:
    registry = ToolRegistry()

    assert registry.tool_names_for(UserType.PARTNER) == ("data_analyzer", "chart_generator")
    assert registry.is_allowed(UserType.LENDER, "financial_calculator")
    assert not registry.is_allowed(UserType.PARTNER, "financial_calculator")


def test_unknown_role_gets_no_tools() -> None:
    registry = ToolRegistry()

    assert registry.get_tools_for_user_type("visitor") == []
    assert registry.get_tools_for_user_type(None) == []


def test_get_tool_by_name() -> None:
    registry = ToolRegistry()

    tool = registry.get_tool("data_analyzer")

    assert tool is not None and tool.name == DataAnalyzer.name
    assert registry.get_tool("web_search") is None
    assert registry.has_tool("chart_generator")


def test_role_mapping_must_name_registered_tools() -> None:
    with pytest.raises(RegistryIntegrityError) as excinfo:
        ToolRegistry(tools=[FinancialCalculator()], role_tools={"lender": ["financial_calculator", "data_analyzer"]})

    assert excinfo.value.role == "lender"
    assert excinfo.value.missing == ["data_analyzer"]


def test_duplicate_registration_is_rejected() -> None:
    registry = ToolRegistry()

    with pytest.raises(DuplicateToolError, match="financial_calculator"):
        registry.register(FinancialCalculator())

    replaced = registry.register(_echo_definition("financial_calculator"), allow_override=True)
    assert registry.get_tool("financial_calculator") is replaced


def test_set_role_tools_drops_duplicates_and_keeps_order() -> None:
    registry = ToolRegistry()

    names = registry.set_role_tools("partner", ["chart_generator", "data_analyzer", "chart_generator"])

    assert names == ("chart_generator", "data_analyzer")
    assert [tool.name for tool in registry.get_tools_for_user_type("partner")] == list(names)


def test_unregister_refused_while_a_role_uses_the_tool() -> None:
    registry = ToolRegistry()

    with pytest.raises(RegistryIntegrityError):
        registry.unregister("chart_generator")

    for role in registry.roles():
        registry.set_role_tools(
            role, [name for name in registry.tool_names_for(role) if name != "chart_generator"]
        )
    assert registry.unregister("chart_generator") is True
    assert registry.unregister("chart_generator") is False
    assert registry.get_tool("chart_generator") is None


def test_remove_role() -> None:
    registry = ToolRegistry()

    assert registry.remove_role("partner") is True
    assert registry.remove_role("partner") is False
    assert registry.get_tools_for_user_type("partner") == []


def test_default_mapping_is_not_mutated() -> None:
    registry = ToolRegistry()
    registry.set_role_tools("lender", ["data_analyzer"])

    assert DEFAULT_ROLE_TOOLS["lender"] == ("financial_calculator", "data_analyzer", "document_processor")


def test_openai_tool_shape() -> None:
    registry = ToolRegistry()
    tool = registry.get_tool("financial_calculator")
    assert tool is not None

    payload = tool.to_openai_tool()

    assert payload["type"] == "function"
    assert payload["function"]["name"] == "financial_calculator"
    assert payload["function"]["description"] == FinancialCalculator.description
    assert payload["function"]["parameters"]["required"] == ["calculation", "inputs"]


@pytest.mark.asyncio
async def test_custom_definition_can_be_registered_and_mapped(tool_context: ToolContext) -> None:
    registry = ToolRegistry(tools=[], role_tools={})
    registry.register(_echo_definition())
    registry.set_role_tools("entrepreneur", ["echo"])

    [tool] = registry.get_tools_for_user_type("entrepreneur")
    result = await tool.execute({"a": 1}, tool_context)

    assert result == {"echo": {"a": 1}, "user": "user-1"}
    assert tool.to_dict() == {
        "name": "echo",
        "description": "Echo the parameters back",
        "parameters": {"type": "object", "properties": {}},
    }
