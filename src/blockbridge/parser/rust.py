"""
Rust Parser

Declarations:
    use a::b::{C, D};                       -> rust_use (PATH)
    mod name;                               -> rust_mod_file (NAME)
    [pub] [const|async|unsafe] fn ...       -> rust_main / rust_pub_function / rust_function
    impl[<T>] [Trait for] Type { ... }      -> rust_impl (TYPE, METHODS)
    [pub] struct Name { a: T, ... }         -> rust_struct (NAME, DERIVES, FIELDS)

The header helpers in this module are shared with the Bevy and Biospheres
parsers, which read the same surface syntax.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from blockbridge.parser.base import DeclarationResult, DialectParser
from blockbridge.parser.nodes import Node
from blockbridge.parser.scanner import (
    Span,
    collapse_ws,
    find_balanced,
    find_top_level,
    match_keyword,
    skip_literal,
    skip_trivia,
    split_top_level,
    split_type_list,
    strip_comments,
)
from blockbridge.parser.session import ConstructError
from blockbridge.parser.statements import split_type_annotation

logger = logging.getLogger(__name__)


IDENT = re.compile(r"[A-Za-z_]\w*")
WHERE_CLAUSE = re.compile(r"\bwhere\b")
FIELD_ATTRIBUTE = re.compile(r"#\[[^\]]*\]\s*")
VISIBILITY = re.compile(r"^pub(\s*\([^)]*\))?\s+")
DERIVE = re.compile(r"^derive\s*\((.*)\)$", re.DOTALL)

FN_QUALIFIERS = ("const", "async", "unsafe", "default")


@dataclass
class FunctionHeader:
    """A parsed `fn` item."""
    name: str
    params: str
    return_type: str
    body: Optional[Span]
    is_pub: bool
    end: int


@dataclass
class StructItem:
    """A parsed `struct` item."""
    name: str
    is_pub: bool
    body: Optional[Span]
    tuple_body: Optional[Span]
    end: int


# ----------------------------------------------------------------------
# Header helpers
# ----------------------------------------------------------------------

def read_ident(text: str, pos: int, end: int) -> Tuple[str, int]:
    m = IDENT.match(text, pos, end)
    if not m:
        return "", pos
    return m.group(0), m.end()


def parse_visibility(text: str, pos: int, end: int) -> Tuple[bool, int]:
    """Consume `pub` / `pub(crate)` / `pub(in path)`. Returns (is_pub, new position)."""
    if not match_keyword(text, pos, "pub", end):
        return False, pos
    cursor = skip_trivia(text, pos + 3, end)
    if cursor < end and text[cursor] == '(':
        span = find_balanced(text, cursor, '(', ')', end=end)
        if span is not None:
            cursor = skip_trivia(text, span.after, end)
    return True, cursor


def skip_generics(text: str, pos: int, end: int) -> int:
    """If a `<...>` list starts at pos, return the index just past it."""
    if pos >= end or text[pos] != '<':
        return pos
    depth = 0
    i = pos
    while i < end:
        ch = text[i]
        if ch == '<':
            depth += 1
        elif ch == '>' and text[i - 1] != '-':
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    raise ConstructError("Unclosed generic parameter list", pos, "UNBALANCED")


def clean_return_type(tail: str) -> str:
    """`-> Vec<T> where T: Clone` -> `Vec<T>`"""
    tail = tail.strip()
    if not tail.startswith('->'):
        return ""
    tail = WHERE_CLAUSE.split(tail[2:], 1)[0]
    return collapse_ws(tail)


def parse_function_header(text: str, pos: int, end: int) -> Optional[FunctionHeader]:
    """
    Parse `[pub] [qualifiers] fn name[<..>](params) [-> ret] [where ..] {body}`.

    Returns None if there is no `fn` at pos. Raises ConstructError when the
    `fn` keyword is there but the rest of the shape is not.
    """
    is_pub, cursor = parse_visibility(text, pos, end)

    while True:
        for qualifier in FN_QUALIFIERS:
            if match_keyword(text, cursor, qualifier, end):
                cursor = skip_trivia(text, cursor + len(qualifier), end)
                break
        else:
            if not match_keyword(text, cursor, "extern", end):
                break
            cursor = skip_trivia(text, cursor + 6, end)
            if cursor < end and text[cursor] == '"':
                cursor = skip_trivia(text, skip_literal(text, cursor), end)

    if not match_keyword(text, cursor, "fn", end):
        return None
    keyword_pos = cursor
    cursor = skip_trivia(text, cursor + 2, end)

    name, cursor = read_ident(text, cursor, end)
    if not name:
        raise ConstructError("Expected function name after `fn`", keyword_pos)
    cursor = skip_trivia(text, skip_generics(text, skip_trivia(text, cursor, end), end), end)

    if cursor >= end or text[cursor] != '(':
        raise ConstructError(f"Expected parameter list for `{name}`", cursor)
    params = find_balanced(text, cursor, '(', ')', end=end)
    if params is None:
        raise ConstructError(f"Unclosed parameter list for `{name}`", cursor, "UNBALANCED")

    stop = find_top_level(text, '{;', params.after, end)
    if stop == -1:
        raise ConstructError(f"Missing body for `{name}`", params.after)
    return_type = clean_return_type(text[params.after:stop])

    if text[stop] == ';':
        # Signature only (trait items, extern blocks)
        return FunctionHeader(name, collapse_params(params.text_of(text)), return_type, None, is_pub, stop + 1)

    body = find_balanced(text, stop, end=end)
    if body is None:
        raise ConstructError(f"Unclosed body for `{name}`", stop, "UNBALANCED")
    return FunctionHeader(name, collapse_params(params.text_of(text)), return_type, body, is_pub, body.after)


def collapse_params(params: str) -> str:
    params = collapse_ws(strip_comments(params))
    return params[:-1].rstrip() if params.endswith(',') else params


def parse_struct(text: str, pos: int, end: int) -> Optional[StructItem]:
    """Parse `[pub] struct Name[<..>] {..}` / `(..);` / `;`."""
    is_pub, cursor = parse_visibility(text, pos, end)
    if not match_keyword(text, cursor, "struct", end):
        return None
    keyword_pos = cursor
    cursor = skip_trivia(text, cursor + 6, end)
    name, cursor = read_ident(text, cursor, end)
    if not name:
        raise ConstructError("Expected struct name", keyword_pos)
    cursor = skip_trivia(text, skip_generics(text, skip_trivia(text, cursor, end), end), end)

    if cursor < end and text[cursor] == '(':
        tuple_body = find_balanced(text, cursor, '(', ')', end=end)
        if tuple_body is None:
            raise ConstructError(f"Unclosed tuple struct `{name}`", cursor, "UNBALANCED")
        semi = find_top_level(text, ';', tuple_body.after, end)
        stop = semi + 1 if semi != -1 else tuple_body.after
        return StructItem(name, is_pub, None, tuple_body, stop)

    stop = find_top_level(text, '{;', cursor, end)
    if stop == -1:
        raise ConstructError(f"Missing body for struct `{name}`", cursor)
    if text[stop] == ';':
        return StructItem(name, is_pub, None, None, stop + 1)
    body = find_balanced(text, stop, end=end)
    if body is None:
        raise ConstructError(f"Unclosed body for struct `{name}`", stop, "UNBALANCED")
    return StructItem(name, is_pub, body, None, body.after)


def derives_of(attrs: List[str]) -> List[str]:
    """Trait names listed in `derive(...)` attributes."""
    derives = []
    for attr in attrs:
        m = DERIVE.match(attr)
        if m:
            derives.extend(split_top_level(m.group(1)))
    return derives


def struct_fields(body_text: str) -> List[Tuple[str, str]]:
    """(name, type) pairs of a named-field struct body."""
    fields = []
    for part in split_type_list(strip_comments(body_text)):
        part = FIELD_ATTRIBUTE.sub("", part).strip()
        part = VISIBILITY.sub("", part)
        name, type_text = split_type_annotation(part)
        if name and type_text:
            fields.append((name, collapse_ws(type_text)))
    return fields


def match_use_path(text: str, pos: int, end: int) -> Optional[Tuple[int, str]]:
    """`[pub] use path;` -> (end position, path)"""
    _, cursor = parse_visibility(text, pos, end)
    if not match_keyword(text, cursor, "use", end):
        return None
    semi = find_top_level(text, ';', cursor, end)
    if semi == -1:
        raise ConstructError("Missing `;` after use declaration", cursor)
    path = collapse_ws(strip_comments(text[cursor + 3:semi]))
    if not path:
        raise ConstructError("Empty use declaration", cursor)
    return semi + 1, path


# ----------------------------------------------------------------------
# Parser
# ----------------------------------------------------------------------

class RustParser(DialectParser):
    """General-purpose Rust parser."""

    name = "rust"
    display_name = "Rust"
    suggestion = "Check Rust syntax"
    fallback_type = "rust_comment"

    USE_TYPE = "rust_use"

    def declaration_matchers(self):
        return [
            self.match_use,
            self.match_mod,
            self.match_function,
            self.match_impl,
            self.match_struct,
        ]

    # Declarations

    def match_use(self, text: str, pos: int, end: int, attrs: List[str]) -> DeclarationResult:
        found = match_use_path(text, pos, end)
        if found is None:
            return None
        stop, path = found
        return stop - pos, self.session.make_node(self.USE_TYPE, fields={"PATH": path})

    def match_mod(self, text: str, pos: int, end: int, attrs: List[str]) -> DeclarationResult:
        _, cursor = parse_visibility(text, pos, end)
        if not match_keyword(text, cursor, "mod", end):
            return None
        name, after = read_ident(text, skip_trivia(text, cursor + 3, end), end)
        semi = skip_trivia(text, after, end)
        if not name or semi >= end or text[semi] != ';':
            # Inline `mod name { .. }` is left to the item skipper
            return None
        return semi + 1 - pos, self.session.make_node("rust_mod_file", fields={"NAME": name})

    def match_function(self, text: str, pos: int, end: int, attrs: List[str]) -> DeclarationResult:
        header = parse_function_header(text, pos, end)
        if header is None:
            return None
        return header.end - pos, self.function_node(text, header)

    def match_impl(self, text: str, pos: int, end: int, attrs: List[str]) -> DeclarationResult:
        cursor = pos
        if match_keyword(text, cursor, "unsafe", end):
            cursor = skip_trivia(text, cursor + 6, end)
        if not match_keyword(text, cursor, "impl", end):
            return None
        keyword_pos = cursor
        cursor = skip_trivia(text, skip_generics(text, skip_trivia(text, cursor + 4, end), end), end)

        body = self.body_span(text, cursor, end)
        if body is None:
            raise ConstructError("Expected `{` after impl header", keyword_pos)
        header = WHERE_CLAUSE.split(text[cursor:body.start - 1], 1)[0]
        trait, type_name = split_impl_header(header)
        if not type_name:
            raise ConstructError("Missing type in impl header", keyword_pos)

        methods = self.scan(text, body.start, body.end, [])
        logger.debug("impl %s: %d methods", type_name, len(methods))
        node = self.session.make_node(
            "rust_impl",
            fields={"TYPE": type_name, "TRAIT": trait} if trait else {"TYPE": type_name},
            statements={"METHODS": methods},
        )
        return body.after - pos, node

    def match_struct(self, text: str, pos: int, end: int, attrs: List[str]) -> DeclarationResult:
        item = parse_struct(text, pos, end)
        if item is None:
            return None
        if item.body is not None:
            fields = struct_fields(item.body.text_of(text))
        elif item.tuple_body is not None:
            fields = [
                (str(i), collapse_ws(VISIBILITY.sub("", part)))
                for i, part in enumerate(split_type_list(strip_comments(item.tuple_body.text_of(text))))
            ]
        else:
            fields = []

        node = self.session.make_node(
            "rust_struct",
            fields={"NAME": item.name, "DERIVES": ", ".join(derives_of(attrs))},
            statements={"FIELDS": [
                self.session.make_node("rust_field", fields={"NAME": n, "TYPE": t})
                for n, t in fields
            ]},
        )
        return item.end - pos, node

    # Node builders

    def parameters_node(self, params: str) -> Optional[Node]:
        if not params:
            return None
        return self.session.make_node("rust_parameters", fields={"PARAMS": params})

    def return_type_node(self, return_type: str) -> Optional[Node]:
        if not return_type:
            return None
        return self.session.make_node("rust_return_type", fields={"TYPE": return_type})

    def function_node(self, text: str, header: FunctionHeader) -> Node:
        body = self.decompose(text, header.body) if header.body else []
        if header.name == "main" and not header.params:
            return self.session.make_node("rust_main", statements={"BODY": body})
        block_type = "rust_pub_function" if header.is_pub else "rust_function"
        return self.session.make_node(
            block_type,
            fields={"NAME": header.name},
            values={
                "PARAMS_OPTIONAL": self.parameters_node(header.params),
                "RETURN_TYPE_OPTIONAL": self.return_type_node(header.return_type),
            },
            statements={"BODY": body},
        )


def split_impl_header(header: str) -> Tuple[str, str]:
    """`Display for Point<T>` -> ("Display", "Point<T>"); `Point` -> ("", "Point")."""
    parts = re.split(r"\s+for\s+", collapse_ws(header), maxsplit=1)
    if len(parts) == 1:
        return "", parts[0]
    return parts[0].strip(), parts[1].strip()
