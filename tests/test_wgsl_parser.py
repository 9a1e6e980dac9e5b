"""
Tests for the WGSL dialect parser.
"""

from blockbridge.parser import parse_source
from blockbridge.parser.wgsl import attribute_map

from conftest import find_node, types_of


def parse_wgsl(text, config):
    return parse_source(text, mode="wgsl", config=config)


class TestDeclarations:
    """Structs, bindings and entry points."""

    def test_full_shader(self, config, wgsl_source):
        result = parse_wgsl(wgsl_source, config)
        assert result.success
        assert types_of(result.nodes) == [
            "wgsl_struct", "wgsl_var", "wgsl_var", "wgsl_function", "wgsl_compute_shader",
        ]

    def test_struct_fields(self, config, wgsl_source):
        struct = find_node(parse_wgsl(wgsl_source, config).nodes, "wgsl_struct", "Params")
        assert struct.text("FIELDS") == "count: u32, dt: f32,"

    def test_uniform_binding(self, config, wgsl_source):
        var = find_node(parse_wgsl(wgsl_source, config).nodes, "wgsl_var", "params")
        assert var.fields == {
            "STORAGE_CLASS": "uniform",
            "ACCESS_MODE": "",
            "GROUP": "0",
            "BINDING": "0",
            "NAME": "params",
            "TYPE": "Params",
        }

    def test_storage_binding(self, config, wgsl_source):
        var = find_node(parse_wgsl(wgsl_source, config).nodes, "wgsl_var", "positions")
        assert var.fields["STORAGE_CLASS"] == "storage"
        assert var.fields["ACCESS_MODE"] == "read_write"
        assert var.fields["BINDING"] == "1"
        assert var.fields["TYPE"] == "array<vec2<f32>>"

    def test_attributes_after_address_space(self, config):
        var = parse_wgsl("var<uniform> @group(2) @binding(3) cam: Camera;", config).nodes[0]
        assert var.fields["GROUP"] == "2"
        assert var.fields["BINDING"] == "3"
        assert var.fields["NAME"] == "cam"

    def test_private_var_with_initializer(self, config):
        var = parse_wgsl("var<private> seed: u32 = 7u;", config).nodes[0]
        assert var.fields["STORAGE_CLASS"] == "private"
        assert var.text("VALUE") == "7u"

    def test_helper_function(self, config, wgsl_source):
        fn = find_node(parse_wgsl(wgsl_source, config).nodes, "wgsl_function", "wrap")
        assert fn.text("PARAMS") == "x: f32"
        assert fn.text("RETURN_TYPE") == "f32"
        ret = fn.body("BODY")[0]
        assert ret.type == "wgsl_return"
        assert ret.text("VALUE") == "fract(x)"


class TestEntryPoints:
    """Shader stage attributes select the block type."""

    def test_compute_shader(self, config, wgsl_source):
        shader = find_node(parse_wgsl(wgsl_source, config).nodes, "wgsl_compute_shader")
        assert shader.fields == {"NAME": "main", "WORKGROUP_SIZE": "64"}
        assert shader.text("PARAMS") == "@builtin(global_invocation_id) id: vec3<u32>"
        assert shader.value("RETURN_TYPE") is None
        assert types_of(shader.body("BODY")) == ["wgsl_var_decl", "wgsl_if", "wgsl_for_loop"]

    def test_compute_body(self, config, wgsl_source):
        shader = find_node(parse_wgsl(wgsl_source, config).nodes, "wgsl_compute_shader")
        decl, branch, loop = shader.body("BODY")
        assert decl.fields == {"KIND": "let", "NAME": "i", "TYPE": ""}
        assert branch.text("CONDITION") == "i >= params.count"
        assert types_of(branch.body("THEN")) == ["wgsl_return"]
        assert loop.fields["VAR"] == "j"
        assert loop.text("UPDATE") == "j++"
        assign = loop.body("BODY")[0]
        assert assign.type == "wgsl_assign"
        assert assign.fields["TARGET"] == "positions[i]"

    def test_vertex_and_fragment(self, config):
        source = """
@vertex
fn vs(@builtin(vertex_index) i: u32) -> @builtin(position) vec4<f32> {
    return vec4<f32>(0.0, 0.0, 0.0, 1.0);
}

@fragment
fn fs() -> @location(0) vec4<f32> {
    return vec4<f32>(1.0);
}
"""
        result = parse_wgsl(source, config)
        assert types_of(result.nodes) == ["wgsl_vertex_shader", "wgsl_fragment_shader"]
        assert result.nodes[0].fields["WORKGROUP_SIZE"] == ""
        assert result.nodes[1].text("RETURN_TYPE") == "@location(0) vec4<f32>"


class TestRecovery:
    """Malformed shader input."""

    def test_fallback(self, config):
        result = parse_wgsl("??", config)
        assert types_of(result.nodes) == ["wgsl_comment"]

    def test_unclosed_attribute(self, config):
        result = parse_wgsl("@workgroup_size(64\nfn main() {}", config)
        assert "UNBALANCED" in [d.code for d in result.warnings]

    def test_bad_var_skipped(self, config):
        result = parse_wgsl("var<uniform> a b: f32;\nvar<private> ok: f32;", config)
        assert [n.fields["NAME"] for n in result.nodes] == ["ok"]
        assert "MALFORMED_DECLARATION" in [d.code for d in result.warnings]


def test_attribute_map():
    assert attribute_map(["group(0)", "compute", "workgroup_size(8, 8)"]) == {
        "group": "0",
        "compute": "",
        "workgroup_size": "8, 8",
    }
