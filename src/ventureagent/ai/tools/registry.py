"""Role-gated tool registry.

The registry owns one instance of every tool and a mapping from user role to
the ordered tool names that role may call. Role mappings are checked against
the registered tools whenever either side changes, so a mapping can never
name a tool that does not exist.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Sequence

from ..ai_types import UserType
from .base import BaseTool
from .chart_generator import ChartGenerator
from .data_analyzer import DataAnalyzer
from .document_processor import DocumentProcessor
from .errors import DuplicateToolError, RegistryIntegrityError
from .financial_calculator import FinancialCalculator
from .types import ToolDefinition

__all__ = ["ToolRegistry", "DEFAULT_ROLE_TOOLS", "default_tools"]

LOGGER = logging.getLogger(__name__)

_CALCULATOR = FinancialCalculator.name
_ANALYZER = DataAnalyzer.name
_DOCUMENTS = DocumentProcessor.name
_CHARTS = ChartGenerator.name

DEFAULT_ROLE_TOOLS: dict[str, tuple[str, ...]] = {
    UserType.ENTREPRENEUR.value: (_CALCULATOR, _ANALYZER, _DOCUMENTS, _CHARTS),
    UserType.INVESTOR.value: (_CALCULATOR, _ANALYZER, _DOCUMENTS, _CHARTS),
    UserType.LENDER.value: (_CALCULATOR, _ANALYZER, _DOCUMENTS),
    UserType.GRANTOR.value: (_ANALYZER, _DOCUMENTS, _CHARTS),
    UserType.PARTNER.value: (_ANALYZER, _CHARTS),
    UserType.ADMIN.value: (_CALCULATOR, _ANALYZER, _DOCUMENTS, _CHARTS),
}


def default_tools() -> list[BaseTool]:
    return [FinancialCalculator(), DataAnalyzer(), DocumentProcessor(), ChartGenerator()]


def _role_key(role: Any) -> str:
    return str(getattr(role, "value", role))


def _dedupe(names: Iterable[str]) -> tuple[str, ...]:
    ordered: list[str] = []
    for name in names:
        if name not in ordered:
            ordered.append(name)
    return tuple(ordered)


class ToolRegistry:
    """Catalog of tool definitions keyed by name, with role -> tool-name mappings.

    Example:
        registry = ToolRegistry()
        tools = registry.get_tools_for_user_type("lender")
        payload = [tool.to_openai_tool() for tool in tools]
    """

    def __init__(
        self,
        tools: Sequence[BaseTool | ToolDefinition] | None = None,
        role_tools: Mapping[str, Sequence[str]] | None = None,
    ) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        self._roles: dict[str, tuple[str, ...]] = {}
        for tool in default_tools() if tools is None else tools:
            self.register(tool)
        mapping = DEFAULT_ROLE_TOOLS if role_tools is None else role_tools
        for role, names in mapping.items():
            self.set_role_tools(role, names)
        LOGGER.debug("Tool registry ready: %s tool(s), %s role(s)", len(self._tools), len(self._roles))

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_tool(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def get_tools_for_user_type(self, user_type: Any) -> list[ToolDefinition]:
        """Tool definitions mapped to ``user_type``, in mapping order; unknown roles get ``[]``."""

        names = self._roles.get(_role_key(user_type), ())
        return [self._tools[name] for name in names]

    def get_all_tools(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def roles(self) -> tuple[str, ...]:
        return tuple(self._roles)

    def tool_names_for(self, user_type: Any) -> tuple[str, ...]:
        return self._roles.get(_role_key(user_type), ())

    def is_allowed(self, user_type: Any, name: str) -> bool:
        return name in self.tool_names_for(user_type)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def register(self, tool: BaseTool | ToolDefinition, *, allow_override: bool = False) -> ToolDefinition:
        """Add a tool (or a ready-made definition) under its name.

        Raises:
            DuplicateToolError: If the name is taken and ``allow_override`` is False.
        """

        definition = tool.get_tool() if isinstance(tool, BaseTool) else tool
        if definition.name in self._tools and not allow_override:
            raise DuplicateToolError(definition.name)
        self._tools[definition.name] = definition
        LOGGER.debug("Registered tool: %s", definition.name)
        return definition

    def unregister(self, name: str) -> bool:
        """Remove a tool; refused while any role still maps to it.

        Returns:
            True if the tool was removed, False if it was not registered.

        Raises:
            RegistryIntegrityError: If a role still references the tool.
        """

        if name not in self._tools:
            return False
        for role, names in self._roles.items():
            if name in names:
                raise RegistryIntegrityError(role, [name])
        del self._tools[name]
        LOGGER.debug("Unregistered tool: %s", name)
        return True

    def set_role_tools(self, user_type: Any, names: Sequence[str]) -> tuple[str, ...]:
        """Replace the tool list for a role; every name must already be registered."""

        role = _role_key(user_type)
        ordered = _dedupe(names)
        missing = [name for name in ordered if name not in self._tools]
        if missing:
            raise RegistryIntegrityError(role, missing)
        self._roles[role] = ordered
        return ordered

    def remove_role(self, user_type: Any) -> bool:
        return self._roles.pop(_role_key(user_type), None) is not None
