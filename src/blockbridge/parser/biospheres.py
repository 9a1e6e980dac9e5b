"""
Biospheres Parser

Biospheres cell simulation code is Bevy code with a domain vocabulary on
top. Blocks are produced for:

- use declarations (rust_use)
- cell components: `#[derive(.., Component, ..)] pub struct` whose name
  mentions Cell or Type, or that appears after the word "cell"
  (bevy_derive_component)
- cell behaviours: functions whose body uses the cell operations or the
  CellType / Genome / AdhesionZone types (bevy_system)

Inside bodies, cell operations and genome accessors become their own
statement blocks.
"""

import logging
import re
from typing import List

from blockbridge.parser.base import DeclarationResult
from blockbridge.parser.rust import RustParser, derives_of, parse_function_header, parse_struct
from blockbridge.parser.scanner import (
    collapse_ws,
    find_balanced,
    find_top_level,
    strip_comments,
)
from blockbridge.parser.statements import MatchResult, StatementDecomposer
from blockbridge.parser.vocabulary import BIOSPHERES

logger = logging.getLogger(__name__)


BEHAVIOUR_MARKERS = (
    "emit_signal", "contract_adhesions", "apply_thrust",
    "CellType", "Genome", "AdhesionZone",
)

CELL_OPERATIONS = (
    ("emit_signal", "bio_emit_signal"),
    ("contract_adhesions", "bio_contract_adhesions"),
    ("apply_thrust", "bio_apply_thrust"),
)

FORCE_UPDATE = re.compile(r"^(.*?forces\.force[\w.\[\]]*)\s*([-+*/]?=)\s*(.+)$", re.DOTALL)
GENOME_CALL = re.compile(r"(?:\b[\w.]+\.)?\b(get_genome|inject_genome|get_mode)\s*\(")


class BioDecomposer(StatementDecomposer):
    """Rust decomposer with cell-operation and genome statements."""

    dialect = BIOSPHERES

    def extra_matchers(self):
        return [self.match_cell_operation, self.match_genome_op]

    def _statement(self, text: str, pos: int, end: int):
        semi = find_top_level(text, ';', pos, end)
        if semi == -1:
            return None, -1
        return text[pos:semi].strip(), semi

    def match_cell_operation(self, text: str, pos: int, end: int) -> MatchResult:
        statement, semi = self._statement(text, pos, end)
        if not statement:
            return None

        for op, block_type in CELL_OPERATIONS:
            idx = statement.find(op + "(")
            if idx == -1:
                idx = statement.find(op + " (")
            if idx == -1:
                continue
            target = statement[:idx].rstrip().rstrip('.')
            paren = statement.find('(', idx)
            span = find_balanced(statement, paren, '(', ')')
            args = span.text_of(statement) if span else statement[paren + 1:]
            node = self.session.make_node(
                block_type,
                fields={"TARGET": collapse_ws(target)},
                values={"ARGS": self.text_node(collapse_ws(args))},
            )
            return semi + 1 - pos, node

        m = FORCE_UPDATE.match(statement)
        if m:
            node = self.session.make_node(
                "bio_apply_thrust",
                fields={"TARGET": collapse_ws(m.group(1)), "OP": m.group(2)},
                values={"ARGS": self.text_node(collapse_ws(m.group(3)))},
            )
            return semi + 1 - pos, node
        return None

    def match_genome_op(self, text: str, pos: int, end: int) -> MatchResult:
        statement, semi = self._statement(text, pos, end)
        if not statement:
            return None
        m = GENOME_CALL.search(statement)
        if not m:
            return None
        node = self.session.make_node(
            "bio_genome_op",
            fields={"CALL": m.group(1)},
            values={"EXPR": self.text_node(collapse_ws(statement))},
        )
        return semi + 1 - pos, node


class BiospheresParser(RustParser):
    """Biospheres cell simulation parser."""

    name = BIOSPHERES
    display_name = "Biospheres"
    suggestion = "Check Biospheres syntax"
    fallback_type = "bio_comment"
    decomposer_class = BioDecomposer

    USE_TYPE = "rust_use"

    def declaration_matchers(self):
        return [
            self.match_use,
            self.match_cell_type,
            self.match_cell_behaviour,
        ]

    def match_cell_type(self, text: str, pos: int, end: int, attrs: List[str]) -> DeclarationResult:
        item = parse_struct(text, pos, end)
        if item is None:
            return None
        derives = {d.split("::")[-1] for d in derives_of(attrs)}
        cell_related = "Cell" in item.name or "Type" in item.name or "cell" in text[:pos]
        if "Component" not in derives or not item.is_pub or not cell_related:
            return item.end - pos, None

        body = item.body or item.tuple_body
        fields = collapse_ws(strip_comments(body.text_of(text))) if body else ""
        node = self.session.make_node(
            "bevy_derive_component",
            fields={"NAME": item.name},
            values={"FIELDS": self.decomposer.text_node(fields)},
        )
        return item.end - pos, node

    def match_cell_behaviour(self, text: str, pos: int, end: int, attrs: List[str]) -> DeclarationResult:
        header = parse_function_header(text, pos, end)
        if header is None:
            return None
        if header.body is None:
            return header.end - pos, None
        body_text = header.body.text_of(text)
        if not any(marker in body_text for marker in BEHAVIOUR_MARKERS):
            logger.debug("Skipping function %s without cell operations", header.name)
            return header.end - pos, None

        node = self.session.make_node(
            "bevy_system",
            fields={"NAME": header.name},
            values={"PARAMS": self.parameters_node(header.params)},
            statements={"BODY": self.decompose(text, header.body)},
        )
        return header.end - pos, node
