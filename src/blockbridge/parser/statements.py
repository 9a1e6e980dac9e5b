"""
Statement Decomposer

Turns the text of a body (function, loop, branch) into an ordered list of
statement blocks.

The decomposer walks the body with a cursor. At each position it tries a
fixed list of matchers, in priority order:

    conditional, while loop, for loop, loop, binding, return,
    <dialect extras>, expression statement

A matcher returns (characters consumed, node) or None. Matchers that own a
nested body find its bounds with the delimiter balancer and decompose it
recursively through the same procedure.

When nothing matches and no top-level semicolon is left, the rest of the
body is the final expression and becomes an implicit return.
"""

import logging
import re
from typing import Callable, List, Optional, Tuple

from blockbridge.parser.nodes import Node
from blockbridge.parser.scanner import (
    find_assignment,
    find_balanced,
    find_top_level,
    line_col,
    match_keyword,
    skip_trivia,
)
from blockbridge.parser.session import ConstructError, ParseSession
from blockbridge.parser.vocabulary import RUST, WGSL

logger = logging.getLogger(__name__)


MatchResult = Optional[Tuple[int, Node]]
Matcher = Callable[[str, int, int], MatchResult]

LOOP_LABEL = re.compile(r"'[A-Za-z_]\w*\s*:\s*")
FOR_HEADER = re.compile(r"(.+?)\s+in\s+(.+)$", re.DOTALL)
PRINTLN = re.compile(r"println!\s*\((.*)\)$", re.DOTALL)
SIMPLE_TARGET = re.compile(r"^[A-Za-z_][\w.]*(?:\[[^\]]*\])?$")


class StatementDecomposer:
    """
    Rust statement decomposer.

    Subclasses for other dialects swap the block types and the binding and
    loop matchers, and may add extra matchers via extra_matchers().
    """

    dialect = RUST

    TEXT_TYPE = "rust_var"
    TEXT_FIELD = "NAME"
    IF_TYPE = "rust_if"
    IF_ELSE_TYPE = "rust_if_else"
    WHILE_TYPE = "rust_while"
    FOR_TYPE = "rust_for"
    LOOP_TYPE = "rust_loop"
    BINDING_TYPE = "rust_let_binding"
    RETURN_TYPE = "rust_return"
    ASSIGN_TYPE = "rust_assign"
    ASSIGN_FIELD = "VAR"
    EXPR_TYPE = "rust_expr_stmt"

    KEYWORDS: Tuple[str, ...] = ("if", "while", "for", "loop", "let", "return")
    BINDING_KEYWORDS: Tuple[str, ...] = ("let",)
    BLOCK_EXPRESSIONS: Tuple[str, ...] = ("match", "unsafe")

    def __init__(self, session: ParseSession):
        self.session = session
        self.depth = 0
        self.matchers: List[Matcher] = (
            [self.match_if, self.match_while, self.match_for, self.match_loop,
             self.match_binding, self.match_return]
            + self.extra_matchers()
            + [self.match_expression]
        )

    def extra_matchers(self) -> List[Matcher]:
        """Dialect-specific matchers, tried just before the expression fallback."""
        return []

    # ------------------------------------------------------------------
    # Node helpers
    # ------------------------------------------------------------------

    def text_node(self, text: str) -> Optional[Node]:
        """Wrap a source fragment in a text block. Empty fragments give None."""
        text = text.strip()
        if not text:
            return None
        return self.session.make_node(self.TEXT_TYPE, fields={self.TEXT_FIELD: text})

    def implicit_return(self, expression: str) -> Node:
        return self.session.make_node(
            self.RETURN_TYPE, values={"VALUE": self.text_node(expression)}
        )

    def _warn(self, text: str, pos: int, message: str, code: str) -> None:
        line, column = line_col(text, pos)
        self.session.add_warning(message, line, column, dialect=self.dialect, code=code)

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def decompose(self, text: str, start: int, end: int) -> List[Node]:
        """Decompose text[start:end] into statement nodes."""
        if self.depth >= self.session.config.max_nesting_depth:
            self._warn(text, start, "Nesting too deep, body left empty", "NESTING_LIMIT")
            return []
        self.depth += 1
        try:
            return self._decompose(text, start, end)
        finally:
            self.depth -= 1

    def _decompose(self, text: str, start: int, end: int) -> List[Node]:
        statements: List[Node] = []
        pos = start

        while True:
            pos = skip_trivia(text, pos, end)
            if pos >= end:
                break

            if text[pos] == ';':
                pos += 1
                continue

            label = LOOP_LABEL.match(text, pos, end)
            if label:
                pos = label.end()
                continue

            result = None
            warned = False
            try:
                for matcher in self.matchers:
                    result = matcher(text, pos, end)
                    if result:
                        break
            except ConstructError as e:
                self._warn(text, e.position or pos, e.message, e.code or "MALFORMED_STATEMENT")
                result = None
                warned = True

            if result:
                consumed, node = result
                statements.append(node)
                pos += max(consumed, 1)
                continue

            keyword = self._leading_keyword(text, pos, end)
            if keyword:
                # Recognized the keyword but not the shape: skip the statement
                if not warned:
                    self._warn(text, pos, f"Could not parse `{keyword}` statement", "MALFORMED_STATEMENT")
                logger.debug("Skipping malformed %s statement at offset %d", keyword, pos)
                semi = find_top_level(text, ';', pos, end)
                if semi == -1:
                    break
                pos = semi + 1
                continue

            remaining = text[pos:end].strip()
            if remaining.startswith('}'):
                self._warn(text, pos, "Unexpected closing brace", "UNBALANCED")
                break
            if remaining:
                # Expression without a semicolon: the body's final value
                statements.append(self.implicit_return(remaining))
            break

        return statements

    def _leading_keyword(self, text: str, pos: int, end: int) -> Optional[str]:
        for keyword in self.KEYWORDS:
            if match_keyword(text, pos, keyword, end):
                return keyword
        return None

    def _body_after(self, text: str, header_start: int, end: int) -> Optional[Tuple[str, Tuple[int, int]]]:
        """
        Locate `header {body}` starting at header_start.

        Returns (header text, (body start, body end)) or None if there is no
        top-level brace or it is never closed.
        """
        brace = find_top_level(text, '{', header_start, end)
        if brace == -1:
            return None
        span = find_balanced(text, brace, end=end)
        if span is None:
            self._warn(text, brace, "Unmatched '{'", "UNBALANCED")
            return None
        return text[header_start:brace], (span.start, span.end)

    # ------------------------------------------------------------------
    # Matchers
    # ------------------------------------------------------------------

    def match_if(self, text: str, pos: int, end: int) -> MatchResult:
        if not match_keyword(text, pos, "if", end):
            return None
        found = self._body_after(text, pos + 2, end)
        if found is None:
            return None
        header, (body_start, body_end) = found
        condition = self.clean_condition(header)
        if not condition:
            raise ConstructError("Missing condition in `if`", pos)

        then_body = self.decompose(text, body_start, body_end)
        cursor = body_end + 1
        else_body = None

        after = skip_trivia(text, cursor, end)
        if match_keyword(text, after, "else", end):
            nxt = skip_trivia(text, after + 4, end)
            if match_keyword(text, nxt, "if", end):
                nested = self.match_if(text, nxt, end)
                if nested:
                    consumed, else_if = nested
                    else_body = [else_if]
                    cursor = nxt + consumed
            elif nxt < end and text[nxt] == '{':
                span = find_balanced(text, nxt, end=end)
                if span is not None:
                    else_body = self.decompose(text, span.start, span.end)
                    cursor = span.after

        if else_body is not None:
            node = self.session.make_node(
                self.IF_ELSE_TYPE,
                values={"CONDITION": self.text_node(condition)},
                statements={"THEN": then_body, "ELSE": else_body},
            )
        else:
            node = self.session.make_node(
                self.IF_TYPE,
                values={"CONDITION": self.text_node(condition)},
                statements={"THEN": then_body},
            )
        return cursor - pos, node

    def match_while(self, text: str, pos: int, end: int) -> MatchResult:
        if not match_keyword(text, pos, "while", end):
            return None
        found = self._body_after(text, pos + 5, end)
        if found is None:
            return None
        header, (body_start, body_end) = found
        condition = self.clean_condition(header)
        if not condition:
            raise ConstructError("Missing condition in `while`", pos)
        node = self.session.make_node(
            self.WHILE_TYPE,
            values={"CONDITION": self.text_node(condition)},
            statements={"BODY": self.decompose(text, body_start, body_end)},
        )
        return body_end + 1 - pos, node

    def match_for(self, text: str, pos: int, end: int) -> MatchResult:
        if not match_keyword(text, pos, "for", end):
            return None
        found = self._body_after(text, pos + 3, end)
        if found is None:
            return None
        header, (body_start, body_end) = found
        m = FOR_HEADER.match(header.strip())
        if not m:
            return None
        node = self.session.make_node(
            self.FOR_TYPE,
            fields={"VAR": m.group(1).strip()},
            values={"ITERATOR": self.text_node(m.group(2))},
            statements={"BODY": self.decompose(text, body_start, body_end)},
        )
        return body_end + 1 - pos, node

    def match_loop(self, text: str, pos: int, end: int) -> MatchResult:
        if not match_keyword(text, pos, "loop", end):
            return None
        brace = skip_trivia(text, pos + 4, end)
        if brace >= end or text[brace] != '{':
            return None
        span = find_balanced(text, brace, end=end)
        if span is None:
            self._warn(text, brace, "Unmatched '{'", "UNBALANCED")
            return None
        node = self.session.make_node(
            self.LOOP_TYPE,
            statements={"BODY": self.decompose(text, span.start, span.end)},
        )
        return span.after - pos, node

    def match_binding(self, text: str, pos: int, end: int) -> MatchResult:
        if not match_keyword(text, pos, "let", end):
            return None
        semi = find_top_level(text, ';', pos, end)
        if semi == -1:
            return None
        statement = text[pos + 3:semi]

        eq = find_assignment(statement)
        if eq == -1:
            target, value = statement.strip(), ""
        else:
            target, value = statement[:eq].strip(), statement[eq + 1:].strip()

        mutable = False
        if target.startswith("mut ") or target.startswith("mut\t"):
            mutable = True
            target = target[4:].strip()

        name, type_text = split_type_annotation(target)
        if not name:
            return None

        node = self.session.make_node(
            self.BINDING_TYPE,
            fields={"MUTABLE": "TRUE" if mutable else "FALSE", "NAME": name},
            values={
                "TYPE": self.text_node(f": {type_text}") if type_text else None,
                "VALUE": self.text_node(value),
            },
        )
        return semi + 1 - pos, node

    def match_return(self, text: str, pos: int, end: int) -> MatchResult:
        if not match_keyword(text, pos, "return", end):
            return None
        semi = find_top_level(text, ';', pos, end)
        value_end = semi if semi != -1 else end
        value = text[pos + 6:value_end]
        node = self.session.make_node(
            self.RETURN_TYPE, values={"VALUE": self.text_node(value)}
        )
        return (semi + 1 if semi != -1 else end) - pos, node

    def match_expression(self, text: str, pos: int, end: int) -> MatchResult:
        if text[pos] == '{' or any(match_keyword(text, pos, kw, end) for kw in self.BLOCK_EXPRESSIONS):
            # Block-like expression statements end at their closing brace
            found = self._body_after(text, pos, end)
            if found is not None:
                _, (_, body_end) = found
                stop = body_end + 1
                after = skip_trivia(text, stop, end)
                if after < end and text[after] == ';':
                    stop = after + 1
                expr = text[pos:body_end + 1]
                return stop - pos, self.expression_statement(expr.strip())

        semi = find_top_level(text, ';', pos, end)
        if semi == -1:
            return None
        expr = text[pos:semi].strip()
        if not expr:
            return None
        return semi + 1 - pos, self.expression_statement(expr)

    # ------------------------------------------------------------------
    # Refinement hooks
    # ------------------------------------------------------------------

    def clean_condition(self, header: str) -> str:
        return header.strip()

    def expression_statement(self, expr: str) -> Node:
        """Build the block for an expression statement."""
        if expr.startswith("println!"):
            m = PRINTLN.match(expr)
            if m:
                return self.session.make_node(
                    "rust_println", values={"MESSAGE": self.text_node(m.group(1))}
                )
        assignment = self.assignment(expr)
        if assignment is not None:
            return assignment
        return self.session.make_node(self.EXPR_TYPE, values={"EXPR": self.text_node(expr)})

    def assignment(self, expr: str) -> Optional[Node]:
        eq = find_assignment(expr)
        if eq == -1:
            return None
        target, value = expr[:eq].strip(), expr[eq + 1:].strip()
        if not SIMPLE_TARGET.match(target) or not value:
            return None
        return self.session.make_node(
            self.ASSIGN_TYPE,
            fields={self.ASSIGN_FIELD: target},
            values={"VALUE": self.text_node(value)},
        )


class WgslDecomposer(StatementDecomposer):
    """WGSL statement decomposer."""

    dialect = WGSL

    TEXT_TYPE = "wgsl_var_ref"
    TEXT_FIELD = "NAME"
    IF_TYPE = "wgsl_if"
    IF_ELSE_TYPE = "wgsl_if_else"
    WHILE_TYPE = "wgsl_while"
    FOR_TYPE = "wgsl_for_loop"
    LOOP_TYPE = "wgsl_loop"
    BINDING_TYPE = "wgsl_var_decl"
    RETURN_TYPE = "wgsl_return"
    ASSIGN_TYPE = "wgsl_assign"
    ASSIGN_FIELD = "TARGET"
    EXPR_TYPE = "wgsl_expr_stmt"

    KEYWORDS = ("if", "while", "for", "loop", "let", "var", "const", "return")
    BINDING_KEYWORDS = ("let", "var", "const")
    BLOCK_EXPRESSIONS = ("switch",)

    def clean_condition(self, header: str) -> str:
        return _strip_parens(header.strip())

    def match_for(self, text: str, pos: int, end: int) -> MatchResult:
        # for (var i = 0u; i < n; i++) { ... }
        if not match_keyword(text, pos, "for", end):
            return None
        paren = skip_trivia(text, pos + 3, end)
        if paren >= end or text[paren] != '(':
            return None
        header = find_balanced(text, paren, '(', ')', end=end)
        if header is None:
            return None
        parts = header.text_of(text).split(';')
        if len(parts) != 3:
            raise ConstructError("Expected `for (init; condition; update)`", pos)
        init, condition, update = (p.strip() for p in parts)

        brace = skip_trivia(text, header.after, end)
        if brace >= end or text[brace] != '{':
            return None
        span = find_balanced(text, brace, end=end)
        if span is None:
            self._warn(text, brace, "Unmatched '{'", "UNBALANCED")
            return None

        var_name, start_value = "", init
        m = re.match(r"(?:var|let)\s+(\w+)\s*(?::[^=]+)?=\s*(.+)$", init, re.DOTALL)
        if m:
            var_name, start_value = m.group(1), m.group(2)

        node = self.session.make_node(
            self.FOR_TYPE,
            fields={"VAR": var_name},
            values={
                "START": self.text_node(start_value),
                "END": self.text_node(condition),
                "UPDATE": self.text_node(update),
            },
            statements={"BODY": self.decompose(text, span.start, span.end)},
        )
        return span.after - pos, node

    def match_binding(self, text: str, pos: int, end: int) -> MatchResult:
        keyword = next((kw for kw in self.BINDING_KEYWORDS if match_keyword(text, pos, kw, end)), None)
        if keyword is None:
            return None
        semi = find_top_level(text, ';', pos, end)
        if semi == -1:
            return None
        statement = text[pos + len(keyword):semi]
        eq = find_assignment(statement)
        if eq == -1:
            target, value = statement.strip(), ""
        else:
            target, value = statement[:eq].strip(), statement[eq + 1:].strip()

        # var<function> x: f32
        if target.startswith('<'):
            close = target.find('>')
            target = target[close + 1:].strip() if close != -1 else target

        name, type_text = split_type_annotation(target)
        if not name or not re.match(r"^\w+$", name):
            return None

        node = self.session.make_node(
            self.BINDING_TYPE,
            fields={"KIND": keyword, "NAME": name, "TYPE": type_text},
            values={"VALUE": self.text_node(value)},
        )
        return semi + 1 - pos, node

    def expression_statement(self, expr: str) -> Node:
        assignment = self.assignment(expr)
        if assignment is not None:
            return assignment
        return self.session.make_node(self.EXPR_TYPE, values={"EXPR": self.text_node(expr)})


def split_type_annotation(target: str) -> Tuple[str, str]:
    """Split `name: Type` on the first single colon. `::` paths are left intact."""
    i = 0
    while i < len(target):
        if target[i] == ':':
            if i + 1 < len(target) and target[i + 1] == ':':
                i += 2
                continue
            return target[:i].strip(), target[i + 1:].strip()
        i += 1
    return target.strip(), ""


def _strip_parens(condition: str) -> str:
    """Drop one pair of parentheses wrapping the whole condition."""
    if condition.startswith('(') and condition.endswith(')'):
        span = find_balanced(condition, 0, '(', ')')
        if span is not None and span.end == len(condition) - 1:
            return condition[1:-1].strip()
    return condition
