"""
blockbridge - Source to Block Tree Conversion

Parses Rust, WGSL, Bevy ECS and Biospheres source into the block trees a
visual editor works with, and serializes them as Blockly XML.
"""

__version__ = "0.1.0"

from blockbridge.parser import (
    parse_files,
    parse_file,
    parse_source,
    nodes_to_xml,
    xml_to_nodes,
)
