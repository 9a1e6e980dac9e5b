"""
blockbridge.parser - Multi-Dialect Source Parser

Converts source text into a tree of block nodes and back out as Blockly
XML. Four dialects are understood: Rust, WGSL, Bevy ECS and Biospheres.
"""

from blockbridge.parser.api import ParseResult, parse_file, parse_source, read_source
from blockbridge.parser.base import DialectParser, DialectResult
from blockbridge.parser.modes import (
    detect_mode,
    detect_modes,
    get_parser,
    merge_results,
    mode_from_filename,
    signature,
)
from blockbridge.parser.multi_file import (
    BatchResult,
    CrossFileReference,
    FileParseResult,
    extract_references,
    parse_files,
    parse_paths,
)
from blockbridge.parser.nodes import (
    Node,
    DeclarationNode,
    StatementNode,
    ExpressionNode,
    LiteralNode,
    OpaqueNode,
)
from blockbridge.parser.session import (
    ConstructError,
    ParseDiagnostic,
    ParseSession,
    UnknownDialectError,
)
from blockbridge.parser.xml_serde import (
    InterchangeFormatError,
    count_nodes,
    files_to_xml,
    nodes_to_xml,
    xml_to_nodes,
)

__all__ = [
    # Entry points
    "parse_source",
    "parse_file",
    "parse_files",
    "parse_paths",
    "read_source",
    "ParseResult",
    "BatchResult",
    "FileParseResult",
    "CrossFileReference",
    "extract_references",
    # Dialects
    "DialectParser",
    "DialectResult",
    "get_parser",
    "detect_mode",
    "detect_modes",
    "mode_from_filename",
    "merge_results",
    "signature",
    # Nodes
    "Node",
    "DeclarationNode",
    "StatementNode",
    "ExpressionNode",
    "LiteralNode",
    "OpaqueNode",
    # Sessions and errors
    "ParseSession",
    "ParseDiagnostic",
    "ConstructError",
    "UnknownDialectError",
    # Serialization
    "nodes_to_xml",
    "xml_to_nodes",
    "files_to_xml",
    "count_nodes",
    "InterchangeFormatError",
]
