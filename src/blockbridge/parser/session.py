"""
Parse Sessions and Diagnostics

A ParseSession is created for every top-level parse call (one file, or one
whole batch) and handed to every dialect parser involved. It owns the two
pieces of mutable state a parse needs:

- the block id counter (ids are never reused within a session)
- the diagnostic list (append-only; recording a diagnostic never raises)

Nothing is shared between sessions, so independent parses never see each
other's ids or errors.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from blockbridge.config import ParserConfig, get_config
from blockbridge.parser.nodes import Node, build_node


class ConstructError(Exception):
    """A single construct could not be recognized. Recovered from locally."""
    def __init__(self, message: str, position: int = 0, code: Optional[str] = None):
        self.message = message
        self.position = position
        self.code = code
        super().__init__(message)


class UnknownDialectError(Exception):
    """Raised when an explicit dialect tag is not one of the supported dialects."""
    def __init__(self, dialect: str):
        self.dialect = dialect
        super().__init__(f"Unknown mode: {dialect}")


@dataclass
class ParseDiagnostic:
    """A diagnostic message from parsing (error, warning, or info)."""
    message: str
    line: int = 0
    column: int = 0
    suggestion: Optional[str] = None
    dialect: Optional[str] = None
    filename: Optional[str] = None
    code: str = "PARSE_ERROR"
    severity: str = "error"  # "error", "warning", "info"
    timestamp: float = field(default_factory=time.time)

    def __str__(self):
        where = f"{self.filename}:" if self.filename else ""
        text = f"{where}{self.line}:{self.column}: {self.severity}: {self.message}"
        if self.suggestion:
            text += f" ({self.suggestion})"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "line": self.line,
            "column": self.column,
            "suggestion": self.suggestion,
            "dialect": self.dialect,
            "filename": self.filename,
            "code": self.code,
            "severity": self.severity,
            "timestamp": self.timestamp,
        }


class ParseSession:
    """
    State for one top-level parse call.

    Usage:
        session = ParseSession()
        node_id = session.next_id()
        session.add_error("Unknown mode: foo")
    """

    ID_PREFIX = "block_"

    def __init__(self, config: Optional[ParserConfig] = None):
        self.config = config or get_config()
        self.diagnostics: List[ParseDiagnostic] = []
        self.current_file: Optional[str] = None
        self._counter = 0

    def next_id(self) -> str:
        """Allocate the next block id."""
        node_id = f"{self.ID_PREFIX}{self._counter}"
        self._counter += 1
        return node_id

    def make_node(self, block_type: str, fields=None, values=None, statements=None) -> Node:
        """Build a node with a fresh id from this session."""
        return build_node(block_type, self.next_id(), fields, values, statements)

    @property
    def ids_issued(self) -> int:
        return self._counter

    def add_diagnostic(
        self,
        message: str,
        line: int = 0,
        column: int = 0,
        suggestion: Optional[str] = None,
        dialect: Optional[str] = None,
        code: str = "PARSE_ERROR",
        severity: str = "error",
    ) -> ParseDiagnostic:
        """Record a diagnostic. Never raises."""
        diagnostic = ParseDiagnostic(
            message=str(message),
            line=line,
            column=column,
            suggestion=suggestion,
            dialect=dialect,
            filename=self.current_file,
            code=code,
            severity=severity,
        )
        self.diagnostics.append(diagnostic)
        return diagnostic

    def add_error(self, message: str, line: int = 0, column: int = 0,
                  suggestion: Optional[str] = None, dialect: Optional[str] = None,
                  code: str = "PARSE_ERROR") -> ParseDiagnostic:
        return self.add_diagnostic(message, line, column, suggestion, dialect, code, "error")

    def add_warning(self, message: str, line: int = 0, column: int = 0,
                    suggestion: Optional[str] = None, dialect: Optional[str] = None,
                    code: str = "PARSE_WARNING") -> ParseDiagnostic:
        return self.add_diagnostic(message, line, column, suggestion, dialect, code, "warning")

    @property
    def errors(self) -> List[ParseDiagnostic]:
        return [d for d in self.diagnostics if d.severity == "error"]

    @property
    def warnings(self) -> List[ParseDiagnostic]:
        return [d for d in self.diagnostics if d.severity == "warning"]

    def has_errors(self) -> bool:
        return any(d.severity == "error" for d in self.diagnostics)
