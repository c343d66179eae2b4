"""Standardized error types for agent tools.

Tool failures are raised, not returned; whoever invoked the tool decides how
to report them. :meth:`ToolError.to_dict` gives the JSON shape handed back to
the model when a caller chooses to forward the failure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar


class ErrorCode:
    """Constants for error codes used in tool responses."""

    UNKNOWN_CALCULATION = "unknown_calculation"
    UNKNOWN_ANALYSIS_TYPE = "unknown_analysis_type"
    UNKNOWN_EXTRACTION_TYPE = "unknown_extraction_type"
    UNKNOWN_CHART_TYPE = "unknown_chart_type"
    INVALID_DATA = "invalid_data"
    INVALID_PARAMETER = "invalid_parameter"
    DOCUMENT_ERROR = "document_error"
    TOOL_NOT_FOUND = "tool_not_found"
    TOOL_NOT_AVAILABLE = "tool_not_available"
    INTERNAL_ERROR = "internal_error"


@dataclass
class ToolError(Exception):
    """Base exception class for all tool errors.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
        suggestion: Actionable guidance for recovery.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = ""

    severity: ClassVar[str] = "error"

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        if self.suggestion:
            result["suggestion"] = self.suggestion
        return result

    def __str__(self) -> str:
        return self.message


@dataclass
class UnknownCalculationError(ToolError):
    error_code: str = field(default=ErrorCode.UNKNOWN_CALCULATION)
    message: str = field(default="Unknown calculation type")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Use one of the calculations listed in the tool schema")

    @classmethod
    def for_value(cls, value: Any) -> "UnknownCalculationError":
        return cls(message=f"Unknown calculation type: {value}", details={"calculation": value})


@dataclass
class UnknownAnalysisTypeError(ToolError):
    error_code: str = field(default=ErrorCode.UNKNOWN_ANALYSIS_TYPE)
    message: str = field(default="Unknown analysis type")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Use trend, distribution, correlation, summary or outliers")

    @classmethod
    def for_value(cls, value: Any) -> "UnknownAnalysisTypeError":
        return cls(message=f"Unknown analysis type: {value}", details={"analysisType": value})


@dataclass
class UnknownExtractionTypeError(ToolError):
    error_code: str = field(default=ErrorCode.UNKNOWN_EXTRACTION_TYPE)
    message: str = field(default="Unknown extraction type")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Use text, tables, metadata or structured_data")

    @classmethod
    def for_value(cls, value: Any) -> "UnknownExtractionTypeError":
        return cls(message=f"Unknown extraction type: {value}", details={"extractionType": value})


@dataclass
class UnknownChartTypeError(ToolError):
    error_code: str = field(default=ErrorCode.UNKNOWN_CHART_TYPE)
    message: str = field(default="Unknown chart type")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Use line, bar, pie, scatter or area")

    @classmethod
    def for_value(cls, value: Any) -> "UnknownChartTypeError":
        return cls(message=f"Unknown chart type: {value}", details={"chartType": value})


@dataclass
class InvalidDataError(ToolError):
    """Raised when the input data array is missing, empty, or of the wrong shape."""

    error_code: str = field(default=ErrorCode.INVALID_DATA)
    message: str = field(default="Data must be a non-empty array")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="")


@dataclass
class InvalidParameterError(ToolError):
    """Raised when parameters fail schema validation or would divide by zero."""

    error_code: str = field(default=ErrorCode.INVALID_PARAMETER)
    message: str = field(default="Invalid tool parameters")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="")

    violations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.violations:
            result["violations"] = list(self.violations)
        return result


@dataclass
class DocumentProcessingError(ToolError):
    error_code: str = field(default=ErrorCode.DOCUMENT_ERROR)
    message: str = field(default="The document could not be processed")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="")


@dataclass
class ToolNotFoundError(ToolError):
    error_code: str = field(default=ErrorCode.TOOL_NOT_FOUND)
    message: str = field(default="Tool not found")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="")

    tool_name: str | None = field(default=None)

    @classmethod
    def for_name(cls, name: str) -> "ToolNotFoundError":
        return cls(message=f"Tool '{name}' not found", tool_name=name)


@dataclass
class ToolNotAvailableError(ToolError):
    """Raised when the caller's role is not mapped to the requested tool."""

    error_code: str = field(default=ErrorCode.TOOL_NOT_AVAILABLE)
    message: str = field(default="Tool is not available for this role")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="")

    tool_name: str | None = field(default=None)
    user_type: str | None = field(default=None)


class DuplicateToolError(Exception):
    """Raised when attempting to register a tool with a name that already exists."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool '{name}' is already registered")


class RegistryIntegrityError(Exception):
    """Raised when a role maps to tool names that are not registered."""

    def __init__(self, role: str, missing: list[str]) -> None:
        self.role = role
        self.missing = list(missing)
        super().__init__(f"Role '{role}' references unknown tool(s): {', '.join(missing)}")


__all__ = [
    "ErrorCode",
    "ToolError",
    "UnknownCalculationError",
    "UnknownAnalysisTypeError",
    "UnknownExtractionTypeError",
    "UnknownChartTypeError",
    "InvalidDataError",
    "InvalidParameterError",
    "DocumentProcessingError",
    "ToolNotFoundError",
    "ToolNotAvailableError",
    "DuplicateToolError",
    "RegistryIntegrityError",
]
