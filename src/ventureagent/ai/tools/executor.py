"""Run registered tools by name on behalf of a user.

The executor checks the caller's role against the registry before running a
tool, applies an optional timeout, and logs each call.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Mapping

from .errors import ToolNotAvailableError, ToolNotFoundError
from .registry import ToolRegistry
from .types import ToolContext

__all__ = ["ToolExecutor", "ExecutorConfig"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ExecutorConfig:
    """Configuration for the tool executor.

    Attributes:
        default_timeout: Default timeout for tool execution in seconds.
        log_arguments: Whether to log tool arguments (may contain sensitive data).
        enforce_roles: If False, any registered tool may be run regardless of role.
    """

    default_timeout: float | None = 30.0
    log_arguments: bool = False
    enforce_roles: bool = True


class ToolExecutor:
    """Executor for running tools from a registry.

    Example:
        executor = ToolExecutor(ToolRegistry())
        context = ToolContext(user_id="u1", user_type="lender")
        result = await executor.execute("financial_calculator", {...}, context)
    """

    def __init__(self, registry: ToolRegistry, config: ExecutorConfig | None = None) -> None:
        self._registry = registry
        self._config = config or ExecutorConfig()

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def config(self) -> ExecutorConfig:
        return self._config

    async def execute(
        self,
        name: str,
        params: Mapping[str, Any],
        context: ToolContext,
        *,
        timeout: float | None = None,
    ) -> Any:
        """Execute a tool by name.

        Raises:
            ToolNotFoundError: If no tool is registered under ``name``.
            ToolNotAvailableError: If the context's role is not mapped to the tool.
            ToolError: Whatever the tool itself raises.
            asyncio.TimeoutError: If execution exceeds the timeout.
        """

        if self._config.log_arguments:
            LOGGER.debug("Executing tool %s (request_id=%s) with arguments: %s", name, context.request_id, params)
        else:
            LOGGER.debug("Executing tool %s (request_id=%s)", name, context.request_id)

        tool = self._registry.get_tool(name)
        if tool is None:
            raise ToolNotFoundError.for_name(name)
        if self._config.enforce_roles and not self._registry.is_allowed(context.user_type, name):
            LOGGER.info("Tool %s refused for role %s", name, context.user_type)
            raise ToolNotAvailableError(
                message=f"Tool '{name}' is not available for user type '{context.user_type}'",
                tool_name=name,
                user_type=context.user_type,
            )

        effective_timeout = timeout if timeout is not None else self._config.default_timeout
        start_time = time.perf_counter()
        try:
            if effective_timeout is not None and effective_timeout > 0:
                result = await asyncio.wait_for(tool.execute(params, context), timeout=effective_timeout)
            else:
                result = await tool.execute(params, context)
        except asyncio.TimeoutError:
            LOGGER.warning(
                "Tool %s timed out after %.1fms (timeout=%.1fs)",
                name,
                (time.perf_counter() - start_time) * 1000,
                effective_timeout,
            )
            raise
        except Exception as exc:
            LOGGER.warning("Tool %s failed after %.1fms: %s", name, (time.perf_counter() - start_time) * 1000, exc)
            raise
        LOGGER.debug("Tool %s completed in %.1fms", name, (time.perf_counter() - start_time) * 1000)
        return result

    def available_tools(self, user_type: Any) -> list[str]:
        return list(self._registry.tool_names_for(user_type))
