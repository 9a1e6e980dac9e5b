"""
Tests for Blockly XML serialization.
"""

import pytest
from lxml import etree

from blockbridge.parser import parse_files, parse_source
from blockbridge.parser.xml_serde import (
    BLOCKLY_NS,
    InterchangeFormatError,
    escape_xml,
    files_to_xml,
    nodes_to_xml,
    xml_to_nodes,
)

from conftest import types_of


NS = {"b": BLOCKLY_NS}


class TestWriting:
    """Document shape."""

    def test_container(self, config):
        nodes = parse_source("fn add(a: i32, b: i32) -> i32 { return a + b; }", config=config).nodes
        root = etree.fromstring(nodes_to_xml(nodes, filename="math.rs").encode("utf-8"))
        container = root.find("b:block", NS)
        assert container.get("type") == "file_container"
        assert container.find("b:field", NS).text == "math.rs"
        fn = container.find("b:statement[@name='CONTENTS']/b:block", NS)
        assert fn.get("type") == "rust_function"
        assert fn.get("id") == nodes[0].id

    def test_default_filename(self):
        root = etree.fromstring(nodes_to_xml([]).encode("utf-8"))
        assert root.find("b:block/b:field", NS).text == "imported.rs"
        assert root.find("b:block/b:statement", NS) is None

    def test_siblings_become_next_chain(self, config):
        nodes = parse_source("use a::b;\nuse c::d;\nuse e::f;", config=config).nodes
        root = etree.fromstring(nodes_to_xml(nodes).encode("utf-8"))
        first = root.find("b:block/b:statement/b:block", NS)
        second = first.find("b:next/b:block", NS)
        third = second.find("b:next/b:block", NS)
        assert [b.find("b:field", NS).text for b in (first, second, third)] == ["a::b", "c::d", "e::f"]
        assert third.find("b:next", NS) is None

    def test_escaping(self):
        assert escape_xml('a < b && c > "d"') == "a &lt; b &amp;&amp; c &gt; &quot;d&quot;"
        assert escape_xml("x\x00y") == "xy"

    def test_files_to_xml(self, config):
        batch = parse_files({"a.rs": "fn a() {}", "b.wgsl": "fn b() {}"}, config)
        documents = files_to_xml(batch)
        assert list(documents) == ["a.rs", "b.wgsl"]
        assert xml_to_nodes(documents["b.wgsl"])[0] == "b.wgsl"


class TestReading:
    """Loading documents back into nodes."""

    def test_round_trip(self, config, rust_source):
        nodes = parse_source(rust_source, config=config).nodes
        filename, loaded = xml_to_nodes(nodes_to_xml(nodes, filename="main.rs"))
        assert filename == "main.rs"
        assert [n.to_dict() for n in loaded] == [n.to_dict() for n in nodes]

    def test_round_trip_special_characters(self, config):
        source = 'fn main() { println!("<tag> & \\"quoted\\"\\n"); let s = \'\\r\'; }'
        nodes = parse_source(source, config=config).nodes
        _, loaded = xml_to_nodes(nodes_to_xml(nodes))
        assert [n.to_dict() for n in loaded] == [n.to_dict() for n in nodes]

    def test_round_trip_fallback_text(self, config):
        nodes = parse_source("not rust\r\nat all", config=config).nodes
        _, loaded = xml_to_nodes(nodes_to_xml(nodes))
        assert loaded[0].fields == nodes[0].fields

    def test_long_chain(self, config):
        source = "\n".join(f"use m::item{i};" for i in range(300))
        nodes = parse_source(source, config=config).nodes
        _, loaded = xml_to_nodes(nodes_to_xml(nodes))
        assert len(loaded) == len(nodes) == 100

    def test_categories_restored(self, config, wgsl_source):
        nodes = parse_source(wgsl_source, config=config).nodes
        _, loaded = xml_to_nodes(nodes_to_xml(nodes))
        assert [type(n) for n in loaded] == [type(n) for n in nodes]

    def test_bare_blocks(self):
        xml = f'''<xml xmlns="{BLOCKLY_NS}">
  <block type="rust_use"><field name="PATH">a::b</field></block>
</xml>'''
        filename, nodes = xml_to_nodes(xml)
        assert filename is None
        assert types_of(nodes) == ["rust_use"]
        assert nodes[0].id == "loaded_1"

    def test_empty_document(self):
        assert xml_to_nodes("<xml></xml>") == (None, [])


class TestMalformedDocuments:
    """Invalid input raises InterchangeFormatError."""

    @pytest.mark.parametrize("xml", [
        "<xml><block type='rust_use'>",
        "<root></root>",
        "<xml><block><field name='A'>x</field></block></xml>",
        "<xml><block type='rust_use'><field>x</field></block></xml>",
        "",
    ])
    def test_rejected(self, xml):
        with pytest.raises(InterchangeFormatError):
            xml_to_nodes(xml)
