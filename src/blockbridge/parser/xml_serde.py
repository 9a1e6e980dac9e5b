"""
Blockly XML Serialization

Writes node trees in the interchange format the block editor loads, and
reads it back:

    xml = nodes_to_xml(result.nodes, filename="main.rs")
    filename, nodes = xml_to_nodes(xml)

Document shape:

    <xml xmlns="https://developers.google.com/blockly/xml">
      <block type="file_container" x="20" y="20">
        <field name="FILENAME">main.rs</field>
        <statement name="CONTENTS">
          <block type="rust_use" id="block_0">
            <field name="PATH">std::fmt</field>
            <next>
              <block type="rust_function" id="block_1"> ... </block>
            </next>
          </block>
        </statement>
      </block>
    </xml>

Sibling order becomes a chain: each block holds the next one inside a
<next> element. Writing is plain string building; reading uses lxml.
"""

import logging
import re
from typing import Dict, List, Optional, Tuple, Union

from lxml import etree

from blockbridge.parser.nodes import Node, build_node, walk_all

logger = logging.getLogger(__name__)


BLOCKLY_NS = "https://developers.google.com/blockly/xml"
DEFAULT_FILENAME = "imported.rs"
CONTAINER_TYPE = "file_container"
CONTAINER_FIELD = "FILENAME"
CONTAINER_SLOT = "CONTENTS"

# Characters XML 1.0 cannot carry at all
_INVALID_XML_CHARS = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f]")


class InterchangeFormatError(Exception):
    """The document is not a well-formed block interchange document."""
    pass


def escape_xml(text: str) -> str:
    """Escape text for use in element content or a quoted attribute."""
    text = _INVALID_XML_CHARS.sub("", str(text))
    return (text
            .replace("&", "&amp;")
            .replace("<", "&lt;")
            .replace(">", "&gt;")
            .replace('"', "&quot;")
            .replace("'", "&apos;")
            .replace("\r", "&#13;"))


# ----------------------------------------------------------------------
# Writing
# ----------------------------------------------------------------------

def _render_contents(node: Node, indent: int, out: List[str]) -> None:
    pad = " " * (indent + 2)
    for name, value in node.fields.items():
        out.append(f'{pad}<field name="{escape_xml(name)}">{escape_xml(value)}</field>')
    for name, child in node.values.items():
        out.append(f'{pad}<value name="{escape_xml(name)}">')
        _render_chain([child], indent + 4, out)
        out.append(f'{pad}</value>')
    for name, children in node.statements.items():
        if not children:
            continue
        out.append(f'{pad}<statement name="{escape_xml(name)}">')
        _render_chain(children, indent + 4, out)
        out.append(f'{pad}</statement>')


def _render_chain(nodes: List[Node], indent: int, out: List[str]) -> None:
    """Write siblings as a <next> chain. Iterative, so long bodies do not recurse."""
    closers: List[str] = []
    for i, node in enumerate(nodes):
        pad = " " * indent
        out.append(f'{pad}<block type="{escape_xml(node.type)}" id="{escape_xml(node.id)}">')
        _render_contents(node, indent, out)
        if i + 1 < len(nodes):
            out.append(f'{pad}  <next>')
            closers.append(f'{pad}</block>')
            closers.append(f'{pad}  </next>')
            indent += 4
        else:
            out.append(f'{pad}</block>')
    out.extend(reversed(closers))


def nodes_to_xml(
    nodes: List[Node],
    filename: str = DEFAULT_FILENAME,
    container_type: str = CONTAINER_TYPE,
) -> str:
    """Serialize top-level nodes into one file container document."""
    out = [
        f'<xml xmlns="{BLOCKLY_NS}">',
        f'  <block type="{escape_xml(container_type)}" x="20" y="20">',
        f'    <field name="{CONTAINER_FIELD}">{escape_xml(filename)}</field>',
    ]
    if nodes:
        out.append(f'    <statement name="{CONTAINER_SLOT}">')
        _render_chain(list(nodes), 6, out)
        out.append('    </statement>')
    else:
        logger.debug("No blocks to add to file container %s", filename)
    out.append('  </block>')
    out.append('</xml>')
    return "\n".join(out)


def files_to_xml(batch) -> Dict[str, str]:
    """One document per file of a BatchResult, keyed by filename."""
    return {
        filename: nodes_to_xml(result.nodes, filename=filename)
        for filename, result in batch.files.items()
    }


def count_nodes(nodes: List[Node]) -> int:
    """Total number of nodes in a sequence of trees."""
    return sum(1 for _ in walk_all(nodes))


# ----------------------------------------------------------------------
# Reading
# ----------------------------------------------------------------------

def _local(element) -> Optional[str]:
    # Comments and processing instructions have non-string tags
    if not isinstance(element.tag, str):
        return None
    return etree.QName(element).localname


def _child_blocks(element) -> List:
    return [c for c in element if _local(c) == "block"]


class _Loader:
    """Rebuilds nodes from <block> elements."""

    def __init__(self):
        self._generated = 0

    def _id_for(self, element) -> str:
        node_id = element.get("id")
        if node_id:
            return node_id
        self._generated += 1
        return f"loaded_{self._generated}"

    def block(self, element) -> Node:
        block_type = element.get("type")
        if not block_type:
            raise InterchangeFormatError(f"<block> without a type (line {element.sourceline})")

        fields: Dict[str, str] = {}
        values: Dict[str, Node] = {}
        statements: Dict[str, List[Node]] = {}
        for child in element:
            tag = _local(child)
            name = child.get("name")
            if tag in ("field", "value", "statement") and not name:
                raise InterchangeFormatError(f"<{tag}> without a name (line {child.sourceline})")
            if tag == "field":
                fields[name] = child.text or ""
            elif tag == "value":
                blocks = _child_blocks(child)
                if blocks:
                    values[name] = self.block(blocks[0])
            elif tag == "statement":
                blocks = _child_blocks(child)
                if blocks:
                    statements[name] = self.chain(blocks[0])

        return build_node(block_type, self._id_for(element), fields, values, statements)

    def chain(self, first) -> List[Node]:
        """Follow <next> links from the first block of a chain."""
        nodes = []
        element = first
        while element is not None:
            nodes.append(self.block(element))
            links = [c for c in element if _local(c) == "next"]
            blocks = _child_blocks(links[0]) if links else []
            element = blocks[0] if blocks else None
        return nodes


def xml_to_nodes(xml: Union[str, bytes]) -> Tuple[Optional[str], List[Node]]:
    """
    Load an interchange document.

    Returns (filename, top-level nodes). The filename comes from the first
    file container and is None when the document holds bare blocks.
    Ids written in the document are kept.

    Raises:
        InterchangeFormatError: malformed XML or an invalid block structure
    """
    if isinstance(xml, str):
        xml = xml.encode("utf-8")
    if not xml.strip():
        raise InterchangeFormatError("Empty interchange document")
    # Chains nest one level per sibling, past libxml2's default depth limit
    parser = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=True)
    try:
        root = etree.fromstring(xml, parser)
    except etree.XMLSyntaxError as e:
        raise InterchangeFormatError(f"Malformed interchange document: {e}") from e

    if _local(root) != "xml":
        raise InterchangeFormatError(f"Expected <xml> root element, found <{_local(root)}>")

    loader = _Loader()
    top = _child_blocks(root)
    if not top:
        return None, []

    container = top[0]
    if container.get("type") != CONTAINER_TYPE:
        # Bare blocks: every top-level block starts a chain
        nodes: List[Node] = []
        for element in top:
            nodes.extend(loader.chain(element))
        return None, nodes

    filename = None
    nodes = []
    for child in container:
        tag = _local(child)
        if tag == "field" and child.get("name") == CONTAINER_FIELD:
            filename = child.text or ""
        elif tag == "statement" and child.get("name") == CONTAINER_SLOT:
            blocks = _child_blocks(child)
            if blocks:
                nodes = loader.chain(blocks[0])
    logger.debug("Loaded %d top-level blocks from %s", len(nodes), filename)
    return filename, nodes
