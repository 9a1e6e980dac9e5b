"""
Bevy ECS Parser

Bevy code is Rust code, so the header helpers and the statement decomposer
are shared with the Rust parser. What differs is which items become blocks:

    use bevy::prelude::*;                          -> bevy_use
    fn move_system(query: Query<&mut Transform>)   -> bevy_system
    #[derive(Component)] struct Velocity { .. }    -> bevy_component
    #[derive(Resource)] struct Score { .. }        -> bevy_resource
    impl Plugin for GamePlugin { fn build(..) }    -> bevy_plugin_impl

Functions without system parameters, and structs without a Component or
Resource derive, are consumed without producing a block; in mixed mode the
Rust parser covers them.

Inside bodies, shader loading and compute pipeline setup get their own
blocks so the multi-file pass can link them to .wgsl files.
"""

import logging
import re
from typing import List, Optional

from blockbridge.parser.base import DeclarationResult
from blockbridge.parser.nodes import Node
from blockbridge.parser.rust import (
    RustParser,
    derives_of,
    parse_function_header,
    parse_struct,
    skip_generics,
    split_impl_header,
)
from blockbridge.parser.scanner import (
    collapse_ws,
    find_top_level,
    match_keyword,
    skip_trivia,
    strip_comments,
)
from blockbridge.parser.session import ConstructError
from blockbridge.parser.statements import MatchResult, StatementDecomposer, split_type_annotation
from blockbridge.parser.vocabulary import BEVY

logger = logging.getLogger(__name__)


SYSTEM_PARAM = re.compile(r"\b(Query|Commands|Res|ResMut)\b")
SHADER_LOAD = re.compile(r'\.load\s*(::\s*<\s*Shader\s*>\s*)?\(\s*"([^"]*)"')
WGSL_PATH = re.compile(r'"([^"]*\.wgsl)"')
PIPELINE_MARKERS = ("queue_compute_pipeline", "ComputePipelineDescriptor")


class BevyDecomposer(StatementDecomposer):
    """Rust decomposer with shader-handle and compute-pipeline statements."""

    dialect = BEVY

    def extra_matchers(self):
        return [self.match_compute_pipeline]

    def match_binding(self, text: str, pos: int, end: int) -> MatchResult:
        if match_keyword(text, pos, "let", end):
            semi = find_top_level(text, ';', pos, end)
            if semi != -1:
                node = self.shader_statement(text[pos + 3:semi])
                if node is not None:
                    return semi + 1 - pos, node
        return super().match_binding(text, pos, end)

    def match_compute_pipeline(self, text: str, pos: int, end: int) -> MatchResult:
        semi = find_top_level(text, ';', pos, end)
        if semi == -1:
            return None
        statement = text[pos:semi]
        if not any(marker in statement for marker in PIPELINE_MARKERS):
            return None
        return semi + 1 - pos, self.pipeline_node(statement, "")

    def shader_statement(self, binding: str) -> Optional[Node]:
        """Refine `let name = ...` into a Bevy block, or None for a plain binding."""
        target, _, value = binding.partition('=')
        name, _ = split_type_annotation(target.strip())
        if name.startswith("mut "):
            name = name[4:].strip()
        if not value:
            return None

        if any(marker in value for marker in PIPELINE_MARKERS):
            return self.pipeline_node(value, name)

        m = SHADER_LOAD.search(value)
        if m and (m.group(1) or m.group(2).endswith(".wgsl")):
            return self.session.make_node(
                "bevy_shader_handle", fields={"NAME": name, "SHADER_PATH": m.group(2)}
            )
        return None

    def pipeline_node(self, statement: str, name: str) -> Node:
        m = WGSL_PATH.search(statement)
        return self.session.make_node(
            "bevy_compute_pipeline",
            fields={"NAME": name, "SHADER_PATH": m.group(1) if m else ""},
            values={"DESCRIPTOR": self.text_node(collapse_ws(statement))},
        )


class BevyParser(RustParser):
    """Bevy ECS parser."""

    name = BEVY
    display_name = "Bevy"
    suggestion = "Check Bevy ECS syntax"
    fallback_type = "bevy_comment"
    decomposer_class = BevyDecomposer

    USE_TYPE = "bevy_use"

    def declaration_matchers(self):
        return [
            self.match_use,
            self.match_plugin_impl,
            self.match_system,
            self.match_component,
        ]

    def match_system(self, text: str, pos: int, end: int, attrs: List[str]) -> DeclarationResult:
        header = parse_function_header(text, pos, end)
        if header is None:
            return None
        if not SYSTEM_PARAM.search(header.params) or header.body is None:
            logger.debug("Skipping non-system function %s", header.name)
            return header.end - pos, None
        node = self.session.make_node(
            "bevy_system",
            fields={"NAME": header.name},
            values={
                "PARAMS": self.parameters_node(header.params),
                "RETURN_TYPE": self.return_type_node(header.return_type),
            },
            statements={"BODY": self.decompose(text, header.body)},
        )
        return header.end - pos, node

    def match_component(self, text: str, pos: int, end: int, attrs: List[str]) -> DeclarationResult:
        item = parse_struct(text, pos, end)
        if item is None:
            return None
        derives = {d.split("::")[-1] for d in derives_of(attrs)}
        if "Component" in derives:
            block_type = "bevy_component"
        elif "Resource" in derives:
            block_type = "bevy_resource"
        else:
            return item.end - pos, None

        body = item.body or item.tuple_body
        fields = collapse_ws(strip_comments(body.text_of(text))) if body else ""
        node = self.session.make_node(
            block_type,
            fields={"NAME": item.name},
            values={"FIELDS": self.decomposer.text_node(fields)},
        )
        return item.end - pos, node

    def match_plugin_impl(self, text: str, pos: int, end: int, attrs: List[str]) -> DeclarationResult:
        if not match_keyword(text, pos, "impl", end):
            return None
        cursor = skip_trivia(text, skip_generics(text, skip_trivia(text, pos + 4, end), end), end)
        body = self.body_span(text, cursor, end)
        if body is None:
            raise ConstructError("Expected `{` after impl header", pos)
        trait, type_name = split_impl_header(text[cursor:body.start - 1])
        if trait.split("::")[-1] != "Plugin":
            return body.after - pos, None

        build_body: List[Node] = []
        item = body.start
        while True:
            item = skip_trivia(text, item, body.end)
            if item >= body.end:
                break
            attr = self.match_attribute(text, item, body.end)
            if attr:
                item += attr[0]
                continue
            header = parse_function_header(text, item, body.end)
            if header is None:
                item = self.skip_item(text, item, body.end)
                continue
            if header.name == "build" and header.body is not None:
                build_body = self.decompose(text, header.body)
                break
            item = header.end

        node = self.session.make_node(
            "bevy_plugin_impl",
            fields={"NAME": type_name},
            statements={"BODY": build_body},
        )
        return body.after - pos, node
