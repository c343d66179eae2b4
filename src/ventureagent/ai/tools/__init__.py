"""Agent tools: definitions, the role-gated registry, and the executors."""

from .base import BaseTool, validate_schema
from .chart_generator import ChartGenerator
from .data_analyzer import DataAnalyzer
from .document_processor import DocumentProcessor
from .errors import (
    DocumentProcessingError,
    DuplicateToolError,
    ErrorCode,
    InvalidDataError,
    InvalidParameterError,
    RegistryIntegrityError,
    ToolError,
    ToolNotAvailableError,
    ToolNotFoundError,
    UnknownAnalysisTypeError,
    UnknownCalculationError,
    UnknownChartTypeError,
    UnknownExtractionTypeError,
)
from .executor import ExecutorConfig, ToolExecutor
from .financial_calculator import FinancialCalculator
from .registry import DEFAULT_ROLE_TOOLS, ToolRegistry
from .types import ToolContext, ToolDefinition

__all__ = [
    "BaseTool",
    "validate_schema",
    "ChartGenerator",
    "DataAnalyzer",
    "DocumentProcessor",
    "FinancialCalculator",
    "ToolRegistry",
    "DEFAULT_ROLE_TOOLS",
    "ToolExecutor",
    "ExecutorConfig",
    "ToolContext",
    "ToolDefinition",
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
