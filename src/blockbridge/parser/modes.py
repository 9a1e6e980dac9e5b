"""
Mode Detection and Mixed-Mode Merging

Detection is purely lexical: each dialect has a handful of fingerprint
substrings, and a text belongs to every dialect whose fingerprints appear.
Rust is the fallback when nothing matches.

When a text belongs to more than one dialect, every relevant parser runs
over the whole text and merge_results() keeps one node per construct:

    priority: biospheres > bevy > wgsl > rust

A node is dropped when a higher-priority parser already produced a node
with the same signature (construct kind, primary field value). So a
`use bevy::prelude::*;` parsed as both bevy_use and rust_use survives only
as bevy_use.
"""

import logging
import re
from typing import Dict, FrozenSet, Iterable, List, Sequence, Tuple, Type

from blockbridge.parser.base import DialectParser, DialectResult
from blockbridge.parser.bevy import BevyParser
from blockbridge.parser.biospheres import BiospheresParser
from blockbridge.parser.nodes import Node
from blockbridge.parser.rust import RustParser
from blockbridge.parser.session import ParseSession, UnknownDialectError
from blockbridge.parser.vocabulary import (
    BEVY,
    BIOSPHERES,
    MERGE_PRIORITY,
    RUST,
    WGSL,
    get_spec,
    is_opaque,
)
from blockbridge.parser.wgsl import WgslParser

logger = logging.getLogger(__name__)


AUTO = "auto"
MIXED = "mixed"

FINGERPRINTS: Dict[str, Tuple[str, ...]] = {
    WGSL: ("@compute", "@vertex", "@fragment", "var<storage", "var<uniform"),
    BEVY: ("use bevy::", "Query<", "Commands", "Res<", "ResMut<"),
    BIOSPHERES: (
        "CellType", "Genome", "AdhesionZone", "SignalChannel",
        "emit_signal", "contract_adhesions",
    ),
}

SHADER_ENTRY_POINT = re.compile(r"@(compute|vertex|fragment)\b")

BEVY_FILENAME_HINTS = ("system", "bevy")
BIO_FILENAME_HINTS = ("cell", "genome", "bio")

PARSERS: Dict[str, Type[DialectParser]] = {
    RUST: RustParser,
    WGSL: WgslParser,
    BEVY: BevyParser,
    BIOSPHERES: BiospheresParser,
}


def get_parser(dialect: str, session: ParseSession) -> DialectParser:
    """Instantiate the parser for a dialect tag."""
    try:
        parser_class = PARSERS[dialect]
    except KeyError:
        raise UnknownDialectError(dialect) from None
    return parser_class(session)


# ----------------------------------------------------------------------
# Detection
# ----------------------------------------------------------------------

def detect_modes(text: str) -> FrozenSet[str]:
    """Set of dialects whose fingerprints appear in text; {rust} if none do."""
    found = frozenset(
        dialect for dialect, markers in FINGERPRINTS.items()
        if any(marker in text for marker in markers)
    )
    return found or frozenset({RUST})


def detect_mode(text: str) -> str:
    """Single dialect tag, or "mixed" when the text carries several."""
    modes = detect_modes(text)
    if len(modes) > 1:
        return MIXED
    return next(iter(modes))


def mode_from_filename(filename: str) -> str:
    """
    Dialect implied by a filename.

    `.wgsl` files are shaders; otherwise name hints pick Bevy
    (system, bevy) or Biospheres (cell, genome, bio); anything else is Rust.
    Hints are matched against the whole key, directories included, so
    `src/systems/movement.rs` is a Bevy file.
    """
    key = str(filename).lower()
    if key.endswith(".wgsl"):
        return WGSL
    if any(hint in key for hint in BEVY_FILENAME_HINTS):
        return BEVY
    if any(hint in key for hint in BIO_FILENAME_HINTS):
        return BIOSPHERES
    return RUST


# ----------------------------------------------------------------------
# Merging
# ----------------------------------------------------------------------

def signature(node: Node) -> Tuple[str, str]:
    """(construct kind, primary field value) identifying a declaration."""
    spec = get_spec(node.type)
    if spec is None:
        return node.type, ""
    if spec.primary_field is None:
        return spec.kind, spec.default_key
    return spec.kind, node.fields.get(spec.primary_field, "")


def _priority(result: DialectResult) -> int:
    return MERGE_PRIORITY.index(result.dialect)


def merge_results(results: Sequence[DialectResult]) -> List[Node]:
    """
    Merge per-dialect results into one declaration sequence.

    Output is ordered by parser priority, then by discovery order within a
    parser. Opaque fallback nodes are kept only when nothing else survives,
    and then only the first one.
    """
    merged: List[Node] = []
    fallbacks: List[Node] = []
    seen = set()

    for result in sorted(results, key=_priority):
        kept = []
        for node in result.nodes:
            if is_opaque(node.type):
                fallbacks.append(node)
                continue
            if signature(node) in seen:
                logger.debug("Dropping %s %s already produced by a higher-priority parser",
                             node.type, signature(node))
                continue
            kept.append(node)
        seen.update(signature(node) for node in kept)
        merged.extend(kept)

    if not merged and fallbacks:
        return fallbacks[:1]
    return merged


def mixed_dialects(text: str, modes: Iterable[str]) -> List[str]:
    """
    Dialects to run over a mixed text, in priority order.

    Rust always runs as the catch-all; WGSL only when a shader entry point
    is present, since its other fingerprints also occur in host code.
    """
    dialects = set(modes) | {RUST}
    if WGSL in dialects and not SHADER_ENTRY_POINT.search(text):
        dialects.discard(WGSL)
    return [d for d in MERGE_PRIORITY if d in dialects]


def parse_mixed(text: str, session: ParseSession, modes: Iterable[str]) -> List[Node]:
    """Run every relevant parser over text and merge the results."""
    dialects = mixed_dialects(text, modes)
    results = [get_parser(dialect, session).parse(text) for dialect in dialects]
    nodes = merge_results(results)

    limit = session.config.max_declarations
    if len(nodes) > limit:
        session.add_warning(
            f"Stopped after {limit} declarations in mixed-mode merge ({len(nodes)} found)",
            suggestion="Split the file or raise max_declarations",
            dialect=MIXED,
            code="TRUNCATED",
        )
        nodes = nodes[:limit]

    logger.info("Mixed parse (%s): %d declarations from %d candidates",
                ", ".join(dialects), len(nodes), sum(len(r.nodes) for r in results))
    return nodes
