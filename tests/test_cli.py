"""
Tests for the command-line interface.
"""

import json

import pytest

from blockbridge.cli import main
from blockbridge.parser import xml_to_nodes


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "blockbridge.yaml"
    path.write_text("max_declarations: 100\n", encoding="utf-8")
    return str(path)


@pytest.fixture
def source_file(tmp_path, rust_source):
    path = tmp_path / "main.rs"
    path.write_text(rust_source, encoding="utf-8")
    return str(path)


class TestParseCommand:
    """blockbridge parse"""

    def test_summary(self, source_file, config_file, capsys):
        assert main(["parse", source_file, "-v", "--config", config_file]) == 0
        out = capsys.readouterr().out
        assert "Dialect: rust" in out
        assert "Top-level blocks: 5" in out
        assert "rust_struct Particle" in out

    def test_json(self, source_file, config_file, capsys):
        assert main(["parse", source_file, "--json", "--config", config_file]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["dialect"] == "rust"
        assert data["nodes"][0]["type"] == "rust_use"

    def test_missing_file(self, tmp_path, config_file, capsys):
        assert main(["parse", str(tmp_path / "nope.rs"), "--config", config_file]) == 1
        assert "Cannot read file" in capsys.readouterr().err

    def test_unknown_mode_rejected(self, source_file):
        with pytest.raises(SystemExit):
            main(["parse", source_file, "--mode", "cobol"])


class TestOtherCommands:
    """xml, batch, detect and config."""

    def test_xml_to_file(self, source_file, config_file, tmp_path):
        output = tmp_path / "main.xml"
        assert main(["xml", source_file, "-o", str(output), "--config", config_file]) == 0
        filename, nodes = xml_to_nodes(output.read_text(encoding="utf-8"))
        assert filename == "main.rs"
        assert len(nodes) == 5

    def test_batch(self, source_file, config_file, tmp_path, capsys):
        shader = tmp_path / "fluid.wgsl"
        shader.write_text("@compute @workgroup_size(1) fn main() {}", encoding="utf-8")
        assert main(["batch", source_file, str(shader), "--config", config_file]) == 0
        out = capsys.readouterr().out
        assert "[wgsl]" in out
        assert "-> physics (import)" in out

    def test_detect(self, source_file, config_file, capsys):
        assert main(["detect", source_file, "--config", config_file]) == 0
        assert "main.rs: rust (from filename: rust)" in capsys.readouterr().out

    def test_config_show(self, config_file, capsys):
        assert main(["config", "--config", config_file]) == 0
        out = capsys.readouterr().out
        assert "max_declarations: 100" in out
        assert f"config_file: {config_file}" in out

    def test_config_write(self, tmp_path, config_file, capsys):
        target = tmp_path / "written.yaml"
        assert main(["config", "--write", str(target), "--config", config_file]) == 0
        assert target.exists()

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out
