"""Base class shared by the discriminator-dispatched tools."""

from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, ClassVar, Mapping

from jsonschema import Draft202012Validator

from .errors import InvalidParameterError, ToolError
from .types import ToolContext, ToolDefinition

__all__ = ["BaseTool", "validate_schema"]

LOGGER = logging.getLogger(__name__)
MAX_SCHEMA_ERRORS = 25

Handler = Callable[[Mapping[str, Any], ToolContext], Awaitable[Any] | Any]


def validate_schema(schema: Mapping[str, Any], payload: Any, *, label: str = "parameters") -> None:
    """Raise :class:`InvalidParameterError` listing every schema violation in ``payload``."""

    validator = Draft202012Validator(schema)
    violations: list[str] = []
    for issue in sorted(validator.iter_errors(payload), key=lambda item: list(item.absolute_path)):
        path = ".".join(str(part) for part in issue.absolute_path)
        violations.append(f"{path}: {issue.message}" if path else issue.message)
        if len(violations) >= MAX_SCHEMA_ERRORS:
            break
    if violations:
        raise InvalidParameterError(
            message=f"Invalid {label}: {violations[0]}",
            violations=violations,
        )


class BaseTool(ABC):
    """Tool whose behaviour is selected by one discriminator parameter.

    ``execute`` resolves the discriminator first (so an unknown value reports
    the tool's own "unknown ..." error), then validates the parameters
    against :attr:`parameters`, then runs the handler.

    Subclasses set:
    - ``name``, ``description``, ``parameters`` (JSON Schema)
    - ``discriminator``: the parameter naming the operation
    - :meth:`handlers`: discriminator value -> handler
    - :meth:`unknown_discriminator`: the error for unsupported values
    """

    name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    parameters: ClassVar[Mapping[str, Any]] = {}
    discriminator: ClassVar[str] = ""

    def get_tool(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
            executor=self.execute,
        )

    async def execute(self, params: Mapping[str, Any], context: ToolContext) -> Any:
        params = dict(params or {})
        handler = self.resolve_handler(params)
        self.validate(params)
        LOGGER.debug("Running %s (%s=%s)", self.name, self.discriminator, params.get(self.discriminator))
        result = handler(params, context)
        if inspect.isawaitable(result):
            result = await result
        return result

    def resolve_handler(self, params: Mapping[str, Any]) -> Handler:
        value = params.get(self.discriminator)
        handler = self.handlers().get(value) if isinstance(value, str) else None
        if handler is None:
            raise self.unknown_discriminator(value)
        return handler

    def validate(self, params: Mapping[str, Any]) -> None:
        validate_schema(self.parameters, params)

    @abstractmethod
    def handlers(self) -> Mapping[str, Handler]:
        ...

    @abstractmethod
    def unknown_discriminator(self, value: Any) -> ToolError:
        ...
