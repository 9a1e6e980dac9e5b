"""
Dialect Parser Base

Every dialect parser implements the same contract:

    parser = RustParser(session)
    result = parser.parse(text)        # DialectResult(dialect, nodes, diagnostics)

parse() never raises. Failures inside a single declaration are recovered
from locally; anything unexpected is caught at the parse() boundary and
recorded as a DIALECT_FAILURE diagnostic, and the nodes built so far are
returned.

Top-level extraction is a cursor scan at depth zero:
- whitespace and comments are skipped
- attributes are collected and handed to the next declaration
- each declaration matcher is tried in order
- anything unrecognized is skipped to the next `;` or past its `{...}` body
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple, Type

from blockbridge.parser.nodes import Node
from blockbridge.parser.scanner import (
    CLOSERS,
    Span,
    excerpt,
    find_balanced,
    find_top_level,
    line_col,
    skip_trivia,
)
from blockbridge.parser.session import ConstructError, ParseDiagnostic, ParseSession
from blockbridge.parser.statements import StatementDecomposer
from blockbridge.parser.vocabulary import RUST, is_opaque

logger = logging.getLogger(__name__)


FALLBACK_PREFIX = "Imported code (could not parse):\n"

# (characters consumed, node or None). None means the item was consumed
# but produces no block.
DeclarationResult = Optional[Tuple[int, Optional[Node]]]
DeclarationMatcher = Callable[[str, int, int, List[str]], DeclarationResult]


@dataclass
class DialectResult:
    """Output of one dialect parser over one text."""
    dialect: str
    nodes: List[Node] = field(default_factory=list)
    diagnostics: List[ParseDiagnostic] = field(default_factory=list)

    @property
    def is_fallback(self) -> bool:
        """True when the parser produced only opaque fallback content."""
        return all(is_opaque(n.type) for n in self.nodes)


class DialectParser:
    """
    Base class for dialect parsers.

    Subclasses set the class attributes and implement declaration_matchers().
    """

    name: str = RUST
    display_name: str = "Rust"
    suggestion: str = "Check that braces and parentheses are balanced"
    fallback_type: str = "rust_comment"
    decomposer_class: Type[StatementDecomposer] = StatementDecomposer

    def __init__(self, session: ParseSession):
        self.session = session
        self.decomposer = self.decomposer_class(session)

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    def parse(self, text: str) -> DialectResult:
        """Parse text into top-level declaration nodes."""
        first_diagnostic = len(self.session.diagnostics)
        nodes: List[Node] = []

        try:
            self.scan(text, 0, len(text), nodes, top_level=True)
        except Exception as e:
            logger.warning("%s parser failed", self.display_name, exc_info=True)
            self.session.add_error(
                f"{self.display_name} parse error: {e}",
                suggestion=self.suggestion,
                dialect=self.name,
                code="DIALECT_FAILURE",
            )

        if not nodes and text.strip():
            nodes.append(self.fallback(text))

        logger.debug("%s parser produced %d declarations", self.display_name, len(nodes))
        return DialectResult(self.name, nodes, self.session.diagnostics[first_diagnostic:])

    def declaration_matchers(self) -> List[DeclarationMatcher]:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Top-level scan
    # ------------------------------------------------------------------

    def scan(self, text: str, start: int, end: int, nodes: List[Node],
             top_level: bool = False) -> List[Node]:
        """
        Extract declarations from text[start:end], appending to nodes.

        The declaration cap applies to the top-level scan only; nested scans
        (impl bodies) are bounded by their enclosing item.
        """
        limit = self.session.config.max_declarations
        matchers = self.declaration_matchers()
        attrs: List[str] = []
        pos = start

        while True:
            pos = skip_trivia(text, pos, end)
            if pos >= end:
                break

            attr = self.match_attribute(text, pos, end)
            if attr:
                consumed, attr_text = attr
                if attr_text:
                    attrs.append(attr_text)
                pos += consumed
                continue

            result = None
            try:
                for matcher in matchers:
                    result = matcher(text, pos, end, attrs)
                    if result:
                        break
            except ConstructError as e:
                self.warn(text, e.position or pos, e.message, e.code or "MALFORMED_DECLARATION")
                result = None

            if result:
                consumed, node = result
                pos += max(consumed, 1)
                attrs = []
                if node is None:
                    continue
                if top_level and len(nodes) >= limit:
                    line, column = line_col(text, pos)
                    self.session.add_warning(
                        f"Stopped after {limit} declarations",
                        line, column,
                        suggestion="Split the file or raise max_declarations",
                        dialect=self.name,
                        code="TRUNCATED",
                    )
                    logger.info("%s scan truncated at %d declarations", self.display_name, limit)
                    break
                nodes.append(node)
                continue

            pos = self.skip_item(text, pos, end)
            attrs = []

        return nodes

    def match_attribute(self, text: str, pos: int, end: int) -> Optional[Tuple[int, str]]:
        """Match `#[...]` (or inner `#![...]`). Returns (consumed, attribute body)."""
        if text[pos] != '#':
            return None
        bracket = pos + 1
        inner = bracket < end and text[bracket] == '!'
        if inner:
            bracket += 1
        if bracket >= end or text[bracket] != '[':
            return None
        span = find_balanced(text, bracket, '[', ']', end=end)
        if span is None:
            self.warn(text, bracket, "Unmatched '['", "UNBALANCED")
            return end - pos, ""
        # Inner attributes apply to the module, not the next item
        return span.after - pos, "" if inner else span.text_of(text).strip()

    def skip_item(self, text: str, pos: int, end: int) -> int:
        """Advance past an unrecognized item."""
        stop = find_top_level(text, ';{' + CLOSERS, pos, end)
        if stop == -1:
            logger.debug("Skipping trailing text at offset %d", pos)
            return end
        if text[stop] == ';':
            return stop + 1
        if text[stop] == '{':
            span = find_balanced(text, stop, end=end)
            if span is None:
                self.warn(text, stop, "Unmatched '{'", "UNBALANCED")
                return end
            return span.after
        logger.debug("Skipping stray '%s' at offset %d", text[stop], stop)
        return stop + 1

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    def body_span(self, text: str, pos: int, end: int) -> Optional[Span]:
        """Balanced `{...}` body starting at the first top-level brace from pos."""
        brace = find_top_level(text, '{;', pos, end)
        if brace == -1 or text[brace] != '{':
            return None
        span = find_balanced(text, brace, end=end)
        if span is None:
            self.warn(text, brace, "Unmatched '{'", "UNBALANCED")
        return span

    def decompose(self, text: str, span: Span) -> List[Node]:
        return self.decomposer.decompose(text, span.start, span.end)

    def fallback(self, text: str) -> Node:
        """Opaque node carrying an excerpt of input that could not be parsed."""
        snippet = excerpt(text.strip(), self.session.config.excerpt_limit)
        return self.session.make_node(self.fallback_type, fields={"TEXT": FALLBACK_PREFIX + snippet})

    def warn(self, text: str, pos: int, message: str, code: str) -> None:
        line, column = line_col(text, pos)
        self.session.add_warning(message, line, column, dialect=self.name, code=code)
