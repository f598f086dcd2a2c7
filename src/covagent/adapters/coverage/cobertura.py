"""Cobertura XML coverage parser.

Cobertura is the XML coverage format produced by cargo-llvm-cov,
cargo-tarpaulin, coverage.py, Coverlet and most JVM tooling. The document
is walked as a single stream of start/end tag events fed into a
:class:`CoberturaScanState`, so no element tree is ever built.

Only the attributes needed for function-level gap detection are read:

    <coverage line-rate="0.0-1.0">
      <class filename="..." line-rate="...">
        <method name="..." line-rate="...">
          <line number="N"/>
        </method>
        <lines><line number="N" hits="H"/></lines>
      </class>
    </coverage>
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from defusedxml.common import DefusedXmlException
from defusedxml.ElementTree import ParseError as DefusedParseError
from defusedxml.ElementTree import XMLParser

from covagent.adapters.coverage.base import (
    CoverageFileError,
    CoverageReport,
    FileCoverage,
    FunctionCoverage,
)

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

logger = logging.getLogger(__name__)

_CLOSURE_MARKER = "::{closure#0}"
_PERCENT = 100.0


class CoberturaParseError(Exception):
    """Raised when a Cobertura document is not well-formed XML."""

    def __init__(self, message: str, offset: int) -> None:
        """Initialize with error message and failure position.

        Args:
            message: Error description.
            offset: Byte offset into the document where parsing failed.
        """
        super().__init__(message)
        self.offset = offset


def _local_name(tag: str) -> str:
    return tag.split("}")[-1] if "}" in tag else tag


def _float_attr(attrs: Mapping[str, str], key: str) -> float:
    value = attrs.get(key)
    if value is None:
        return 0.0
    try:
        number = float(value)
    except ValueError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def _int_attr(attrs: Mapping[str, str], key: str) -> int:
    value = attrs.get(key)
    if value is None:
        return 0
    try:
        number = int(value)
    except ValueError:
        return 0
    return max(number, 0)


def sanitize_method_name(raw: str) -> str:
    """Unescape generic brackets and drop closure markers from a method name."""
    return raw.replace("&lt;", "<").replace("&gt;", ">").replace(_CLOSURE_MARKER, "")


@dataclass
class _MethodAccumulator:
    name: str
    hit: bool
    line: int = 0


@dataclass
class _FileAccumulator:
    path: str
    coverage_percentage: float
    functions: list[FunctionCoverage] = field(default_factory=list)
    line_hits: dict[int, int] = field(default_factory=dict)

    def freeze(self) -> FileCoverage:
        uncovered = tuple(sorted(n for n, hits in self.line_hits.items() if hits == 0))
        return FileCoverage(
            path=self.path,
            coverage_percentage=self.coverage_percentage,
            lines_covered=len(self.line_hits) - len(uncovered),
            lines_total=len(self.line_hits),
            uncovered_lines=uncovered,
            functions=tuple(self.functions),
        )


class CoberturaScanState:
    """Finite-state accumulator driven by Cobertura start/end tag events.

    One instance belongs to exactly one parse. ``on_start``/``on_end`` are
    independent of the tokenizer, which keeps the transitions testable on
    their own.
    """

    def __init__(self) -> None:
        self.overall_percentage = 0.0
        self.files: list[FileCoverage] = []
        self.current_file: _FileAccumulator | None = None
        self.current_method: _MethodAccumulator | None = None

    def on_start(self, tag: str, attrs: Mapping[str, str]) -> None:
        """Handle a start tag."""
        name = _local_name(tag)
        if name == "coverage":
            self.overall_percentage = _float_attr(attrs, "line-rate") * _PERCENT
        elif name == "class":
            self._open_file(attrs)
        elif name == "method":
            self.current_method = _MethodAccumulator(
                name=sanitize_method_name(attrs.get("name", "")),
                hit=_float_attr(attrs, "line-rate") > 0.0,
            )
        elif name == "line":
            self._record_line(attrs)

    def on_end(self, tag: str) -> None:
        """Handle an end tag."""
        name = _local_name(tag)
        if name == "method":
            self._close_method()
        elif name == "class":
            self._close_file()

    def build_report(self) -> CoverageReport:
        """Return the report accumulated so far."""
        return CoverageReport(
            overall_percentage=self.overall_percentage,
            files=tuple(self.files),
        )

    def _open_file(self, attrs: Mapping[str, str]) -> None:
        filename = attrs.get("filename", "")
        if not filename:
            return
        self.current_file = _FileAccumulator(
            path=filename,
            coverage_percentage=_float_attr(attrs, "line-rate") * _PERCENT,
        )

    def _close_file(self) -> None:
        file_acc, self.current_file = self.current_file, None
        if file_acc is None:
            return
        if not file_acc.functions:
            logger.debug("Dropping %s: no measured methods", file_acc.path)
            return
        self.files.append(file_acc.freeze())

    def _record_line(self, attrs: Mapping[str, str]) -> None:
        if "number" not in attrs:
            return
        number = _int_attr(attrs, "number")
        if self.current_method is not None:
            # Last <line> inside the method wins.
            self.current_method.line = number
        elif self.current_file is not None:
            hits = _int_attr(attrs, "hits")
            self.current_file.line_hits[number] = max(
                self.current_file.line_hits.get(number, 0), hits
            )

    def _close_method(self) -> None:
        method, self.current_method = self.current_method, None
        if method is None or not method.name or self.current_file is None:
            return
        self.current_file.functions.append(
            FunctionCoverage(
                name=method.name,
                line=method.line,
                coverage_percentage=_PERCENT if method.hit else 0.0,
                is_covered=method.hit,
            )
        )


class _ParserTarget:
    """Bridges the XMLParser target protocol onto a scan state."""

    def __init__(self, state: CoberturaScanState) -> None:
        self._state = state

    def start(self, tag: str, attrib: dict[str, str]) -> None:
        self._state.on_start(tag, attrib)

    def end(self, tag: str) -> None:
        self._state.on_end(tag)

    def close(self) -> CoverageReport:
        return self._state.build_report()


def _byte_offset(data: bytes, position: tuple[int, int] | None) -> int:
    """Translate an expat (line, column) position into a byte offset.

    Expat counts columns in characters, so the error line is decoded up to
    *column* and measured again in bytes.
    """
    if not position:
        return len(data)
    line, column = position
    lines = data.splitlines(keepends=True)
    preceding = sum(len(chunk) for chunk in lines[: max(line - 1, 0)])
    current = lines[line - 1] if 0 < line <= len(lines) else b""
    head = current.decode("utf-8", errors="surrogateescape")[:column]
    return min(preceding + len(head.encode("utf-8", errors="surrogateescape")), len(data))


def _error_offset(expat: Any, data: bytes, position: tuple[int, int] | None) -> int:
    """Byte offset of a parse error, preferring expat's own byte index."""
    index = getattr(expat, "ErrorByteIndex", -1)
    if isinstance(index, int) and index >= 0:
        return min(index, len(data))
    return _byte_offset(data, position)


def parse_cobertura(xml: str | bytes) -> CoverageReport:
    """Parse a Cobertura XML document into a CoverageReport.

    Args:
        xml: The document text. ``str`` input is encoded as UTF-8; ``bytes``
            input honours the encoding declared by the document.

    Returns:
        The parsed report. Classes without any measured method are left out.

    Raises:
        CoberturaParseError: If the document is not well-formed, is truncated
            or uses forbidden DTD/entity constructs.
    """
    if isinstance(xml, str):
        try:
            data = xml.encode("utf-8")
        except UnicodeEncodeError as exc:
            offset = len(xml[: exc.start].encode("utf-8", errors="surrogatepass"))
            raise CoberturaParseError(
                f"Invalid character at position {offset}: {exc.reason}", offset=offset
            ) from exc
        encoding: str | None = "utf-8"
    else:
        data = xml
        encoding = None

    state = CoberturaScanState()
    parser = XMLParser(target=_ParserTarget(state), encoding=encoding)
    # close() drops its expat handle, keep one for error positions
    expat = getattr(parser, "parser", None)
    try:
        parser.feed(data)
        report: CoverageReport = parser.close()
    except DefusedParseError as exc:
        offset = _error_offset(expat, data, getattr(exc, "position", None))
        raise CoberturaParseError(
            f"Error parsing XML at position {offset}: {exc}", offset=offset
        ) from exc
    except DefusedXmlException as exc:
        offset = max(data.find(b"<!"), 0)
        raise CoberturaParseError(
            f"Forbidden XML construct at position {offset}: {exc}", offset=offset
        ) from exc

    logger.debug(
        "Parsed Cobertura report: %d files, %.1f%% overall",
        len(report.files),
        report.overall_percentage,
    )
    return report


def load_coverage(coverage_file: Path) -> CoverageReport:
    """Read and parse a Cobertura XML file.

    Raises:
        CoverageFileError: If the file cannot be read.
        CoberturaParseError: If the file is not well-formed XML.
    """
    try:
        data = coverage_file.read_bytes()
    except OSError as e:
        logger.error("Failed to read coverage file %s: %s", coverage_file, e)
        raise CoverageFileError(
            f"Failed to read coverage file {coverage_file}. Generate it first or drop "
            "--use-existing."
        ) from e
    return parse_cobertura(data)
