"""
WGSL Parser

Declarations:
    struct Name { a: f32, b: vec3<f32> }                   -> wgsl_struct
    @compute @workgroup_size(64) fn main(..) { .. }         -> wgsl_compute_shader
    @vertex fn vs(..) -> @builtin(position) vec4<f32> {..}  -> wgsl_vertex_shader
    @fragment fn fs(..) -> @location(0) vec4<f32> { .. }    -> wgsl_fragment_shader
    fn helper(..) -> f32 { .. }                             -> wgsl_function
    @group(0) @binding(1) var<storage, read> data: array<f32>;
    var<uniform> @group(0) @binding(0) params: Params;      -> wgsl_var

Attributes (`@name` or `@name(args)`) are collected by the top-level scan
and handed to the next declaration.
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from blockbridge.parser.base import DeclarationResult, DialectParser
from blockbridge.parser.nodes import Node
from blockbridge.parser.rust import clean_return_type, collapse_params, read_ident
from blockbridge.parser.scanner import (
    collapse_ws,
    find_balanced,
    find_top_level,
    match_keyword,
    skip_trivia,
    strip_comments,
)
from blockbridge.parser.session import ConstructError
from blockbridge.parser.statements import WgslDecomposer, split_type_annotation
from blockbridge.parser.vocabulary import WGSL

logger = logging.getLogger(__name__)


SHADER_STAGES = ("compute", "vertex", "fragment")
ATTRIBUTE = re.compile(r"([A-Za-z_]\w*)(?:\((.*)\))?$", re.DOTALL)


def attribute_map(attrs: List[str]) -> Dict[str, str]:
    """['group(0)', 'compute'] -> {'group': '0', 'compute': ''}"""
    result = {}
    for attr in attrs:
        m = ATTRIBUTE.match(attr.strip())
        if m:
            result[m.group(1)] = collapse_ws(m.group(2) or "")
    return result


class WgslParser(DialectParser):
    """WGSL shader parser."""

    name = WGSL
    display_name = "WGSL"
    suggestion = "Check WGSL syntax"
    fallback_type = "wgsl_comment"
    decomposer_class = WgslDecomposer

    def declaration_matchers(self):
        return [
            self.match_struct,
            self.match_function,
            self.match_var,
        ]

    def match_attribute(self, text: str, pos: int, end: int) -> Optional[Tuple[int, str]]:
        """`@name` or `@name(args)` -> (consumed, "name(args)")"""
        if text[pos] != '@':
            return None
        name, cursor = read_ident(text, pos + 1, end)
        if not name:
            return None
        after_name = cursor
        cursor = skip_trivia(text, cursor, end)
        if cursor < end and text[cursor] == '(':
            span = find_balanced(text, cursor, '(', ')', end=end)
            if span is None:
                self.warn(text, cursor, f"Unclosed arguments for @{name}", "UNBALANCED")
                return end - pos, ""
            return span.after - pos, f"{name}({span.text_of(text).strip()})"
        return after_name - pos, name

    def text_node(self, text: str) -> Optional[Node]:
        return self.decomposer.text_node(text)

    # Declarations

    def match_struct(self, text: str, pos: int, end: int, attrs: List[str]) -> DeclarationResult:
        if not match_keyword(text, pos, "struct", end):
            return None
        name, cursor = read_ident(text, skip_trivia(text, pos + 6, end), end)
        if not name:
            raise ConstructError("Expected struct name", pos)
        body = self.body_span(text, cursor, end)
        if body is None:
            raise ConstructError(f"Expected body for struct `{name}`", cursor)
        fields = collapse_ws(strip_comments(body.text_of(text)))
        stop = body.after
        semi = skip_trivia(text, stop, end)
        if semi < end and text[semi] == ';':
            stop = semi + 1
        node = self.session.make_node(
            "wgsl_struct",
            fields={"NAME": name},
            values={"FIELDS": self.text_node(fields)},
        )
        return stop - pos, node

    def match_function(self, text: str, pos: int, end: int, attrs: List[str]) -> DeclarationResult:
        if not match_keyword(text, pos, "fn", end):
            return None
        name, cursor = read_ident(text, skip_trivia(text, pos + 2, end), end)
        if not name:
            raise ConstructError("Expected function name after `fn`", pos)
        cursor = skip_trivia(text, cursor, end)
        if cursor >= end or text[cursor] != '(':
            raise ConstructError(f"Expected parameter list for `{name}`", cursor)
        params = find_balanced(text, cursor, '(', ')', end=end)
        if params is None:
            raise ConstructError(f"Unclosed parameter list for `{name}`", cursor, "UNBALANCED")
        body = self.body_span(text, params.after, end)
        if body is None:
            raise ConstructError(f"Missing body for `{name}`", params.after)
        return_type = clean_return_type(text[params.after:body.start - 1])

        flags = attribute_map(attrs)
        stage = next((s for s in SHADER_STAGES if s in flags), None)
        values = {
            "PARAMS": self.text_node(collapse_params(params.text_of(text))),
            "RETURN_TYPE": self.text_node(return_type),
        }
        statements = {"BODY": self.decompose(text, body)}

        if stage:
            node = self.session.make_node(
                f"wgsl_{stage}_shader",
                fields={"NAME": name, "WORKGROUP_SIZE": flags.get("workgroup_size", "")},
                values=values,
                statements=statements,
            )
        else:
            node = self.session.make_node(
                "wgsl_function", fields={"NAME": name}, values=values, statements=statements
            )
        return body.after - pos, node

    def match_var(self, text: str, pos: int, end: int, attrs: List[str]) -> DeclarationResult:
        if not match_keyword(text, pos, "var", end):
            return None
        cursor = skip_trivia(text, pos + 3, end)

        storage_class, access_mode = "", ""
        if cursor < end and text[cursor] == '<':
            close = text.find('>', cursor, end)
            if close == -1:
                raise ConstructError("Unclosed address space in `var<...>`", cursor, "UNBALANCED")
            parts = [p.strip() for p in text[cursor + 1:close].split(',')]
            storage_class = parts[0]
            access_mode = parts[1] if len(parts) > 1 else ""
            cursor = skip_trivia(text, close + 1, end)

        # Attributes may also follow the address space
        trailing = list(attrs)
        while cursor < end and text[cursor] == '@':
            attr = self.match_attribute(text, cursor, end)
            if attr is None:
                break
            consumed, attr_text = attr
            trailing.append(attr_text)
            cursor = skip_trivia(text, cursor + consumed, end)

        semi = find_top_level(text, ';', cursor, end)
        if semi == -1:
            raise ConstructError("Missing `;` after var declaration", cursor)
        declaration = text[cursor:semi]
        initializer = ""
        if '=' in declaration:
            declaration, initializer = declaration.split('=', 1)
        var_name, type_text = split_type_annotation(declaration)
        if not re.match(r"^\w+$", var_name):
            raise ConstructError("Expected variable name in var declaration", cursor)

        flags = attribute_map(trailing)
        node = self.session.make_node(
            "wgsl_var",
            fields={
                "STORAGE_CLASS": storage_class,
                "ACCESS_MODE": access_mode,
                "GROUP": flags.get("group", ""),
                "BINDING": flags.get("binding", ""),
                "NAME": var_name,
                "TYPE": collapse_ws(type_text),
            },
            values={"VALUE": self.text_node(initializer)},
        )
        logger.debug("WGSL binding %s (group=%s binding=%s)", var_name,
                     flags.get("group", ""), flags.get("binding", ""))
        return semi + 1 - pos, node
