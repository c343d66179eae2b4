"""Document processor tool and the parsers it delegates to.

Parsing is handled by :class:`DocumentParser` implementations chosen by file
extension. The tool itself only maps an extraction type to the shape of the
result it returns.
"""

from __future__ import annotations

import asyncio
import csv
import io
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence

from pypdf import PdfReader

from .base import BaseTool, Handler
from .errors import DocumentProcessingError, ToolError, UnknownExtractionTypeError
from .types import ToolContext

__all__ = [
    "DocumentProcessor",
    "DocumentParser",
    "ParsedDocument",
    "Table",
    "PdfDocumentParser",
    "PlainTextParser",
    "CsvParser",
    "EXTRACTION_TYPES",
    "extract_fields",
    "detect_tables",
]

LOGGER = logging.getLogger(__name__)

EXTRACTION_TYPES = ("text", "tables", "metadata", "structured_data")

_FIELD_PATTERN = re.compile(r"^\s*([A-Za-z][A-Za-z0-9 &/()._-]{0,60}?)\s*:\s*(\S.*?)\s*$")
_NUMBER_PATTERN = re.compile(r"^\(?-?[$€£]?\s*-?[\d,]*\.?\d+\s*%?\)?$")
_SEPARATOR_ROW = re.compile(r"^[\s|:\-+]+$")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


@dataclass(slots=True)
class Table:
    headers: list[str]
    rows: list[list[str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"headers": list(self.headers), "rows": [list(row) for row in self.rows]}


@dataclass(slots=True)
class ParsedDocument:
    """Parser output shared by every extraction type."""

    text: str
    page_count: int = 1
    tables: list[Table] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


class DocumentParser(Protocol):
    """Protocol implemented by concrete document parsers."""

    name: str
    extensions: tuple[str, ...]

    def supports(self, path: Path) -> bool:
        ...

    def parse(self, path: Path) -> ParsedDocument:
        ...


# ----------------------------------------------------------------------
# Text helpers
# ----------------------------------------------------------------------


def _split_row(line: str, delimiter: str) -> list[str]:
    cells = [cell.strip() for cell in line.strip().split(delimiter)]
    if delimiter == "|":
        if cells and cells[0] == "":
            cells = cells[1:]
        if cells and cells[-1] == "":
            cells = cells[:-1]
    return cells


def _row_delimiter(line: str) -> str | None:
    if "|" in line and len(_split_row(line, "|")) >= 2:
        return "|"
    if "\t" in line.strip() and len(_split_row(line, "\t")) >= 2:
        return "\t"
    return None


def detect_tables(text: str) -> list[Table]:
    """Find pipe- or tab-delimited blocks; the first row of a block is its header."""

    tables: list[Table] = []
    block: list[list[str]] = []
    block_delimiter: str | None = None

    def _flush() -> None:
        if len(block) >= 2:
            tables.append(Table(headers=block[0], rows=block[1:]))
        block.clear()

    for line in text.splitlines():
        if block_delimiter == "|" and _SEPARATOR_ROW.match(line) and "-" in line:
            continue
        delimiter = _row_delimiter(line)
        if delimiter is None or (block and delimiter != block_delimiter):
            _flush()
            block_delimiter = None
            if delimiter is None:
                continue
        block_delimiter = delimiter
        block.append(_split_row(line, delimiter))
    _flush()
    return tables


def _coerce_value(raw: str) -> Any:
    candidate = raw.strip()
    if not _NUMBER_PATTERN.match(candidate):
        return candidate
    negative = candidate.startswith("(") and candidate.endswith(")") or "-" in candidate
    digits = re.sub(r"[^\d.]", "", candidate)
    try:
        number = float(digits)
    except ValueError:
        return candidate
    return -number if negative else number


def extract_fields(text: str) -> dict[str, Any]:
    """Collect ``Key: value`` lines; numeric values (currency, percentages) become floats."""

    fields: dict[str, Any] = {}
    for line in text.splitlines():
        match = _FIELD_PATTERN.match(line)
        if match is None:
            continue
        key, value = match.group(1).strip(), match.group(2)
        if value.startswith("//") or key in fields:
            continue
        fields[key] = _coerce_value(value)
    return fields


def _metadata_key(raw: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", raw.lstrip("/")).lower()


# ----------------------------------------------------------------------
# Parsers
# ----------------------------------------------------------------------


class PdfDocumentParser:
    """Extract page text and document information from PDF files using pypdf."""

    name: str = "pdf"
    extensions: tuple[str, ...] = (".pdf",)

    def __init__(self, *, reader_cls: type | None = None) -> None:
        self._reader_cls = reader_cls or PdfReader

    def supports(self, path: Path) -> bool:
        return path.suffix.lower() in self.extensions

    def parse(self, path: Path) -> ParsedDocument:
        try:
            reader = self._reader_cls(str(path))
        except Exception as exc:
            raise DocumentProcessingError(
                message=f"Unable to open PDF: {exc}",
                details={"document": str(path)},
            ) from exc

        pages = list(getattr(reader, "pages", []))
        chunks: list[str] = []
        for index, page in enumerate(pages):
            extractor = getattr(page, "extract_text", None)
            if not callable(extractor):
                LOGGER.debug("PDF page %s missing extract_text; skipping.", index)
                continue
            try:
                chunk = str(extractor() or "").strip()
            except Exception as exc:
                LOGGER.debug("Failed to extract page %s: %s", index, exc)
                continue
            if chunk:
                chunks.append(chunk)

        text = "\n\n".join(chunks)
        info = getattr(reader, "metadata", None) or {}
        metadata = {_metadata_key(str(key)): str(value) for key, value in dict(info).items() if value is not None}
        metadata.setdefault("title", path.stem)
        return ParsedDocument(
            text=text,
            page_count=len(pages),
            tables=detect_tables(text),
            metadata=metadata,
        )


class PlainTextParser:
    """Plain text and Markdown files."""

    name: str = "text"
    extensions: tuple[str, ...] = (".txt", ".md")

    def supports(self, path: Path) -> bool:
        return path.suffix.lower() in self.extensions

    def parse(self, path: Path) -> ParsedDocument:
        text = _read_text(path)
        title = path.stem
        for line in text.splitlines():
            if line.startswith("# "):
                title = line[2:].strip() or title
                break
        return ParsedDocument(
            text=text,
            page_count=1,
            tables=detect_tables(text),
            metadata={
                "title": title,
                "format": path.suffix.lower().lstrip("."),
                "size_bytes": path.stat().st_size,
                "line_count": len(text.splitlines()),
            },
        )


class CsvParser:
    """Comma-separated files; the whole file is one table."""

    name: str = "csv"
    extensions: tuple[str, ...] = (".csv",)

    def supports(self, path: Path) -> bool:
        return path.suffix.lower() in self.extensions

    def parse(self, path: Path) -> ParsedDocument:
        text = _read_text(path)
        rows = [row for row in csv.reader(io.StringIO(text)) if any(cell.strip() for cell in row)]
        tables = [Table(headers=rows[0], rows=rows[1:])] if rows else []
        if rows and all(len(row) == 2 for row in rows):
            # Two-column sheets are label/value pairs; render them as "Label: value" lines.
            text = "\n".join(f"{label.strip()}: {value.strip()}" for label, value in rows[1:])
        return ParsedDocument(
            text=text,
            page_count=1,
            tables=tables,
            metadata={
                "title": path.stem,
                "format": "csv",
                "size_bytes": path.stat().st_size,
                "row_count": max(len(rows) - 1, 0),
                "column_count": len(rows[0]) if rows else 0,
            },
        )


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise DocumentProcessingError(
            message=f"Unable to read document: {exc}",
            details={"document": str(path)},
        ) from exc


# ----------------------------------------------------------------------
# Tool
# ----------------------------------------------------------------------


class DocumentProcessor(BaseTool):
    """Extract text, tables, metadata or key/value fields from a local document."""

    name = "document_processor"
    description = (
        "Extracts text, tables, metadata or structured key/value data from business documents (PDF, text, CSV)."
    )
    discriminator = "extractionType"
    parameters = {
        "type": "object",
        "properties": {
            "document": {
                "type": "string",
                "minLength": 1,
                "description": "Path of the document to process",
            },
            "extractionType": {
                "type": "string",
                "enum": list(EXTRACTION_TYPES),
                "description": "What to extract from the document",
            },
        },
        "required": ["document", "extractionType"],
    }

    def __init__(self, parsers: Sequence[DocumentParser] | None = None) -> None:
        self._parsers: list[DocumentParser] = list(parsers or (PdfDocumentParser(), PlainTextParser(), CsvParser()))

    def parsers(self) -> tuple[DocumentParser, ...]:
        return tuple(self._parsers)

    def register_parser(self, parser: DocumentParser) -> None:
        if parser not in self._parsers:
            self._parsers.insert(0, parser)

    def supported_extensions(self) -> tuple[str, ...]:
        seen: list[str] = []
        for parser in self._parsers:
            for extension in parser.extensions:
                if extension not in seen:
                    seen.append(extension)
        return tuple(seen)

    def handlers(self) -> Mapping[str, Handler]:
        return {
            "text": self._extract_text,
            "tables": self._extract_tables,
            "metadata": self._extract_metadata,
            "structured_data": self._extract_structured_data,
        }

    def unknown_discriminator(self, value: Any) -> ToolError:
        return UnknownExtractionTypeError.for_value(value)

    async def load(self, document: str | Path) -> ParsedDocument:
        path = Path(document).expanduser()
        if not path.is_file():
            raise DocumentProcessingError(
                message=f"Document not found: {path}",
                details={"document": str(path)},
            )
        parser = self._select_parser(path)
        if parser is None:
            raise DocumentProcessingError(
                message=f"Unsupported document type '{path.suffix or path.name}'",
                details={"document": str(path), "supported": list(self.supported_extensions())},
            )
        LOGGER.debug("Parsing %s with %s parser", path, parser.name)
        return await asyncio.to_thread(parser.parse, path)

    def _select_parser(self, path: Path) -> DocumentParser | None:
        for parser in self._parsers:
            if parser.supports(path):
                return parser
        return None

    async def _extract_text(self, params: Mapping[str, Any], context: ToolContext) -> dict[str, Any]:
        parsed = await self.load(params["document"])
        return {
            "text": parsed.text,
            "page_count": parsed.page_count,
            "word_count": len(parsed.text.split()),
        }

    async def _extract_tables(self, params: Mapping[str, Any], context: ToolContext) -> dict[str, Any]:
        parsed = await self.load(params["document"])
        return {
            "tables": [table.to_dict() for table in parsed.tables],
            "table_count": len(parsed.tables),
        }

    async def _extract_metadata(self, params: Mapping[str, Any], context: ToolContext) -> dict[str, Any]:
        parsed = await self.load(params["document"])
        return {
            "metadata": dict(parsed.metadata),
            "page_count": parsed.page_count,
        }

    async def _extract_structured_data(self, params: Mapping[str, Any], context: ToolContext) -> dict[str, Any]:
        parsed = await self.load(params["document"])
        fields = extract_fields(parsed.text)
        return {
            "fields": fields,
            "field_count": len(fields),
        }
