"""
Block Vocabularies

The closed set of block types each dialect may produce. The visual editor
and the code generators both key off these names, so the table below is the
contract between the parser and everything that consumes its output.

Every type records:
- the dialect that owns it (a type belongs to exactly one dialect)
- its node category (declaration, statement, expression, literal, opaque)
- its construct kind and primary field, which together form the signature
  used to recognize the same construct produced by two different parsers
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple


RUST = "rust"
WGSL = "wgsl"
BEVY = "bevy"
BIOSPHERES = "biospheres"

DIALECTS: Tuple[str, ...] = (RUST, WGSL, BEVY, BIOSPHERES)

# Most specific first. Used by the mixed-mode merger.
MERGE_PRIORITY: Tuple[str, ...] = (BIOSPHERES, BEVY, WGSL, RUST)


class NodeCategory(Enum):
    """Coarse category of a block type."""
    DECLARATION = "declaration"
    STATEMENT = "statement"
    EXPRESSION = "expression"
    LITERAL = "literal"
    OPAQUE = "opaque"


@dataclass(frozen=True)
class BlockSpec:
    """Static description of one block type."""
    type: str
    dialect: str
    category: NodeCategory
    kind: str
    primary_field: Optional[str] = None
    default_key: str = ""


def _specs(dialect: str, category: NodeCategory, entries) -> Dict[str, BlockSpec]:
    specs = {}
    for entry in entries:
        block_type, kind = entry[0], entry[1]
        primary = entry[2] if len(entry) > 2 else None
        default_key = entry[3] if len(entry) > 3 else ""
        specs[block_type] = BlockSpec(block_type, dialect, category, kind, primary, default_key)
    return specs


_D = NodeCategory.DECLARATION
_S = NodeCategory.STATEMENT
_E = NodeCategory.EXPRESSION
_L = NodeCategory.LITERAL
_O = NodeCategory.OPAQUE


VOCABULARY: Dict[str, BlockSpec] = {}

# Rust
VOCABULARY.update(_specs(RUST, _D, [
    ("rust_use", "use", "PATH"),
    ("rust_mod_file", "mod", "NAME"),
    ("rust_function", "function", "NAME"),
    ("rust_pub_function", "function", "NAME"),
    ("rust_main", "function", None, "main"),
    ("rust_impl", "impl", "TYPE"),
    ("rust_struct", "struct", "NAME"),
    ("rust_field", "field", "NAME"),
]))
VOCABULARY.update(_specs(RUST, _S, [
    ("rust_if", "if"),
    ("rust_if_else", "if_else"),
    ("rust_while", "while"),
    ("rust_for", "for"),
    ("rust_loop", "loop"),
    ("rust_let_binding", "binding", "NAME"),
    ("rust_return", "return"),
    ("rust_assign", "assign", "VAR"),
    ("rust_expr_stmt", "expression"),
    ("rust_println", "print"),
]))
VOCABULARY.update(_specs(RUST, _L, [
    ("rust_parameters", "parameters", "PARAMS"),
    ("rust_return_type", "return_type", "TYPE"),
]))
VOCABULARY.update(_specs(RUST, _E, [
    ("rust_var", "text", "NAME"),
]))
VOCABULARY.update(_specs(RUST, _O, [
    ("rust_comment", "opaque"),
]))

# WGSL
VOCABULARY.update(_specs(WGSL, _D, [
    ("wgsl_struct", "struct", "NAME"),
    ("wgsl_function", "function", "NAME"),
    ("wgsl_compute_shader", "function", "NAME"),
    ("wgsl_vertex_shader", "function", "NAME"),
    ("wgsl_fragment_shader", "function", "NAME"),
    ("wgsl_var", "binding", "NAME"),
]))
VOCABULARY.update(_specs(WGSL, _S, [
    ("wgsl_if", "if"),
    ("wgsl_if_else", "if_else"),
    ("wgsl_while", "while"),
    ("wgsl_for_loop", "for"),
    ("wgsl_loop", "loop"),
    ("wgsl_var_decl", "binding", "NAME"),
    ("wgsl_return", "return"),
    ("wgsl_assign", "assign", "TARGET"),
    ("wgsl_expr_stmt", "expression"),
]))
VOCABULARY.update(_specs(WGSL, _E, [
    ("wgsl_var_ref", "text", "NAME"),
]))
VOCABULARY.update(_specs(WGSL, _O, [
    ("wgsl_comment", "opaque"),
]))

# Bevy ECS
VOCABULARY.update(_specs(BEVY, _D, [
    ("bevy_use", "use", "PATH"),
    ("bevy_system", "function", "NAME"),
    ("bevy_component", "struct", "NAME"),
    ("bevy_resource", "struct", "NAME"),
    ("bevy_derive_component", "struct", "NAME"),
    ("bevy_plugin_impl", "impl", "NAME"),
]))
VOCABULARY.update(_specs(BEVY, _S, [
    ("bevy_shader_handle", "shader_handle", "NAME"),
    ("bevy_compute_pipeline", "compute_pipeline", "SHADER_PATH"),
]))
VOCABULARY.update(_specs(BEVY, _O, [
    ("bevy_comment", "opaque"),
]))

# Biospheres cell simulation
VOCABULARY.update(_specs(BIOSPHERES, _S, [
    ("bio_emit_signal", "emit_signal"),
    ("bio_contract_adhesions", "contract_adhesions"),
    ("bio_apply_thrust", "apply_thrust"),
    ("bio_genome_op", "genome_op", "CALL"),
]))
VOCABULARY.update(_specs(BIOSPHERES, _O, [
    ("bio_comment", "opaque"),
]))


def get_spec(block_type: str) -> Optional[BlockSpec]:
    """Look up the spec for a block type, or None if it is not in any vocabulary."""
    return VOCABULARY.get(block_type)


def category_of(block_type: str) -> NodeCategory:
    """Category of a block type. Unknown types are treated as opaque."""
    spec = VOCABULARY.get(block_type)
    return spec.category if spec else NodeCategory.OPAQUE


def dialect_of(block_type: str) -> Optional[str]:
    """The dialect that owns a block type."""
    spec = VOCABULARY.get(block_type)
    return spec.dialect if spec else None


def types_for(dialect: str) -> FrozenSet[str]:
    """All block types owned by a dialect."""
    return frozenset(t for t, s in VOCABULARY.items() if s.dialect == dialect)


def is_opaque(block_type: str) -> bool:
    return category_of(block_type) is NodeCategory.OPAQUE
