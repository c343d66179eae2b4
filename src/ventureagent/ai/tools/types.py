"""Tool definition and runtime context types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping

__all__ = ["ToolDefinition", "ToolContext", "ToolExecutorFn"]

ToolExecutorFn = Callable[[Mapping[str, Any], "ToolContext"], Awaitable[Any]]


@dataclass(slots=True)
class ToolContext:
    """Who is invoking a tool and within which conversation."""

    user_id: str
    user_type: str
    session_id: str | None = None
    request_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class ToolDefinition:
    """Named, schema-described tool with its executor.

    Attributes:
        name: Unique key within a registry.
        description: Human-readable purpose, forwarded to the model.
        parameters: JSON Schema (object) describing accepted parameters.
        executor: Coroutine function ``(params, context) -> result``.
    """

    name: str
    description: str
    parameters: Mapping[str, Any]
    executor: ToolExecutorFn = field(compare=False, repr=False)

    async def execute(self, params: Mapping[str, Any], context: ToolContext) -> Any:
        return await self.executor(params, context)

    def to_openai_tool(self) -> dict[str, Any]:
        """Function-calling definition understood by OpenAI-compatible backends."""

        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": dict(self.parameters),
            },
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": dict(self.parameters),
        }
