"""
Tests for batch parsing and cross-file reference extraction.
"""

from blockbridge import parse_files
from blockbridge.parser.multi_file import (
    IMPORT,
    SHADER_HANDLE,
    CrossFileReference,
    parse_paths,
)

from conftest import types_of


RENDER_SYSTEM = """
use bevy::prelude::*;

fn setup(asset_server: Res<AssetServer>) {
    let shader = asset_server.load("shaders/fluid.wgsl");
}
"""


class TestBatchParsing:
    """Per-file results from one batch."""

    def test_single_reference(self, config):
        batch = parse_files({"a.rs": "use mod::x;\nfn f() {}", "b.rs": "fn g() {}"}, config)
        assert batch.success
        assert batch.references == [CrossFileReference("a.rs", "mod::x", IMPORT)]

    def test_dialect_from_filename(self, config, wgsl_source):
        batch = parse_files([
            ("main.rs", "fn main() {}"),
            ("shaders/fluid.wgsl", wgsl_source),
            ("render_system.rs", RENDER_SYSTEM),
        ], config)
        assert [r.dialect for r in batch.files.values()] == ["rust", "wgsl", "bevy"]
        assert list(batch.files) == ["main.rs", "shaders/fluid.wgsl", "render_system.rs"]

    def test_ids_unique_across_files(self, config, rust_source, bevy_source):
        batch = parse_files({"main.rs": rust_source, "game_system.rs": bevy_source}, config)
        ids = [n.id for result in batch.files.values() for root in result.nodes for n in root.walk()]
        assert len(ids) == len(set(ids))

    def test_diagnostics_carry_filename(self, config):
        batch = parse_files({"ok.rs": "fn a() {}", "broken.rs": "fn b() {"}, config)
        assert batch.diagnostics
        assert {d.filename for d in batch.diagnostics} == {"broken.rs"}
        assert batch.files["broken.rs"].diagnostics == batch.diagnostics
        assert batch.files["ok.rs"].diagnostics == []

    def test_empty_batch(self, config):
        batch = parse_files({}, config)
        assert batch.files == {}
        assert batch.references == []


class TestReferences:
    """Import, module and shader-handle references."""

    def test_shader_handle(self, config):
        batch = parse_files({"render_system.rs": RENDER_SYSTEM}, config)
        assert batch.references == [
            CrossFileReference("render_system.rs", "bevy::prelude::*", IMPORT),
            CrossFileReference("render_system.rs", "shaders/fluid.wgsl", SHADER_HANDLE),
        ]

    def test_module_declarations(self, config, rust_source):
        batch = parse_files({"main.rs": rust_source}, config)
        targets = [(r.target_path, r.kind) for r in batch.references]
        assert targets == [("std::collections::HashMap", IMPORT), ("physics", IMPORT)]

    def test_plain_use_is_not_a_reference(self, config):
        batch = parse_files({"lib.rs": "use serde;"}, config)
        assert batch.references == []

    def test_references_for(self, config):
        batch = parse_files({"a.rs": "use x::y;", "b.rs": "use z::w;"}, config)
        assert [r.target_path for r in batch.references_for("b.rs")] == ["z::w"]

    def test_trees_left_unchanged(self, config, rust_source):
        from blockbridge.parser import parse_source
        batch = parse_files({"main.rs": rust_source}, config)
        single = parse_source(rust_source, mode="rust", config=config)
        assert [n.structure() for n in batch.files["main.rs"].nodes] == [n.structure() for n in single.nodes]


class TestParsePaths:
    """Reading a batch from disk."""

    def test_reads_files(self, config, tmp_path):
        (tmp_path / "main.rs").write_text("mod physics;\n", encoding="utf-8")
        (tmp_path / "physics.rs").write_text("pub fn step() {}\n", encoding="utf-8")
        batch = parse_paths([tmp_path / "main.rs", tmp_path / "physics.rs"], config)
        assert batch.success
        assert types_of(batch.files[str(tmp_path / "physics.rs")].nodes) == ["rust_pub_function"]
        assert [r.target_path for r in batch.references] == ["physics"]

    def test_unreadable_file(self, config, tmp_path):
        (tmp_path / "main.rs").write_text("fn main() {}\n", encoding="utf-8")
        batch = parse_paths([tmp_path / "main.rs", tmp_path / "missing.rs"], config)
        assert not batch.success
        assert batch.diagnostics[0].code == "READ_ERROR"
        assert list(batch.files) == [str(tmp_path / "main.rs")]

    def test_to_dict(self, config):
        data = parse_files({"a.rs": "use a::b;"}, config).to_dict()
        assert data["success"] is True
        assert data["references"] == [{"source_file": "a.rs", "target_path": "a::b", "kind": "import"}]
        assert data["files"][0]["dialect"] == "rust"
