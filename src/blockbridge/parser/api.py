"""
Parse Entry Points

    result = parse_source(code)                       # detect the dialect
    result = parse_source(code, mode="wgsl")          # force one
    result = parse_file("shaders/particles.wgsl")

No exception escapes these functions: every failure is recorded as a
diagnostic on the returned ParseResult.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Union

from blockbridge.config import ParserConfig
from blockbridge.parser.modes import AUTO, MIXED, detect_modes, get_parser, parse_mixed
from blockbridge.parser.nodes import Node
from blockbridge.parser.session import ParseDiagnostic, ParseSession, UnknownDialectError
from blockbridge.parser.vocabulary import DIALECTS

logger = logging.getLogger(__name__)


SOURCE_ENCODINGS = ('utf-8-sig', 'utf-8', 'latin-1')


@dataclass
class ParseResult:
    """Nodes and diagnostics from one parse call."""
    nodes: List[Node] = field(default_factory=list)
    diagnostics: List[ParseDiagnostic] = field(default_factory=list)
    dialect: str = AUTO
    dialects: FrozenSet[str] = frozenset()
    filename: Optional[str] = None

    @property
    def success(self) -> bool:
        return not any(d.severity == "error" for d in self.diagnostics)

    @property
    def errors(self) -> List[ParseDiagnostic]:
        return [d for d in self.diagnostics if d.severity == "error"]

    @property
    def warnings(self) -> List[ParseDiagnostic]:
        return [d for d in self.diagnostics if d.severity == "warning"]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "dialect": self.dialect,
            "dialects": sorted(self.dialects),
            "success": self.success,
            "nodes": [n.to_dict() for n in self.nodes],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


def parse_source(
    text: str,
    mode: str = AUTO,
    filename: Optional[str] = None,
    config: Optional[ParserConfig] = None,
    session: Optional[ParseSession] = None,
) -> ParseResult:
    """
    Parse source text into top-level nodes.

    Args:
        text: Source text
        mode: "auto" to detect, "mixed" to run every detected dialect,
              or a dialect tag (rust, wgsl, bevy, biospheres)
        filename: Recorded on diagnostics
        config: Parser configuration (global config if omitted)
        session: Existing session to allocate ids from (batch parsing)

    Returns:
        ParseResult; check .success or .diagnostics for problems
    """
    if session is None:
        session = ParseSession(config)
    first_diagnostic = len(session.diagnostics)
    session.current_file = filename

    def result(nodes: List[Node], dialect: str, dialects: FrozenSet[str]) -> ParseResult:
        return ParseResult(
            nodes=nodes,
            diagnostics=session.diagnostics[first_diagnostic:],
            dialect=dialect,
            dialects=dialects,
            filename=filename,
        )

    if not isinstance(text, str):
        session.add_error(
            f"Expected source text, got {type(text).__name__}",
            code="INVALID_INPUT",
        )
        return result([], mode, frozenset())

    if mode is not None and not isinstance(mode, str):
        session.add_error(
            f"Expected a mode name, got {type(mode).__name__}",
            code="INVALID_INPUT",
        )
        return result([], str(mode), frozenset())

    mode = (mode or AUTO).lower()
    try:
        if mode in (AUTO, MIXED):
            modes = detect_modes(text)
            if mode == MIXED or len(modes) > 1:
                return result(parse_mixed(text, session, modes), MIXED, modes)
            dialect = next(iter(modes))
        else:
            dialect = mode
            modes = frozenset({mode})

        nodes = get_parser(dialect, session).parse(text).nodes
        logger.debug("Parsed %s as %s: %d declarations", filename or "<text>", dialect, len(nodes))
        return result(nodes, dialect, modes)

    except UnknownDialectError as e:
        session.add_error(
            str(e),
            suggestion=f"Use one of: {AUTO}, {', '.join(DIALECTS)}",
            code="UNKNOWN_DIALECT",
        )
        return result([], mode, frozenset())


def read_source(path: Union[str, Path]) -> str:
    """Read a source file. Handles encoding fallback."""
    # Try UTF-8 with BOM first, then UTF-8, then latin-1 (which always succeeds)
    for encoding in SOURCE_ENCODINGS[:-1]:
        try:
            with open(path, 'r', encoding=encoding) as f:
                return f.read()
        except UnicodeDecodeError:
            continue
    with open(path, 'r', encoding=SOURCE_ENCODINGS[-1]) as f:
        return f.read()


def parse_file(
    path: Union[str, Path],
    mode: str = AUTO,
    config: Optional[ParserConfig] = None,
) -> ParseResult:
    """Parse a file. Read failures are reported as diagnostics."""
    try:
        text = read_source(path)
    except OSError as e:
        session = ParseSession(config)
        session.current_file = str(path)
        session.add_error(f"Cannot read file: {e}", code="READ_ERROR")
        return ParseResult(diagnostics=list(session.diagnostics), dialect=mode, filename=str(path))
    return parse_source(text, mode=mode, filename=str(path), config=config)
