"""
Multi-File Parsing

Parses a batch of files in one session, then walks the resulting trees to
find references between files:

    use crate::physics::step;          -> import        "crate::physics::step"
    mod physics;                       -> import        "physics"
    let s = server.load("fluid.wgsl"); -> shader-handle "fluid.wgsl"

The dialect of each file comes from its name, not its content, so a
`.wgsl` file is always parsed as WGSL.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from blockbridge.config import ParserConfig
from blockbridge.parser.api import parse_source, read_source
from blockbridge.parser.modes import mode_from_filename
from blockbridge.parser.nodes import Node, walk_all
from blockbridge.parser.session import ParseDiagnostic, ParseSession

logger = logging.getLogger(__name__)


IMPORT = "import"
SHADER_HANDLE = "shader-handle"

IMPORT_TYPES = ("rust_use", "bevy_use")
SHADER_TYPES = ("bevy_shader_handle", "bevy_compute_pipeline")


@dataclass(frozen=True)
class CrossFileReference:
    """A symbolic reference from one file to something outside it."""
    source_file: str
    target_path: str
    kind: str

    def to_dict(self) -> Dict[str, str]:
        return {"source_file": self.source_file, "target_path": self.target_path, "kind": self.kind}


@dataclass
class FileParseResult:
    """Parse output for one file of a batch."""
    filename: str
    dialect: str
    nodes: List[Node] = field(default_factory=list)
    diagnostics: List[ParseDiagnostic] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "dialect": self.dialect,
            "nodes": [n.to_dict() for n in self.nodes],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


@dataclass
class BatchResult:
    """Per-file results, in input order, plus the cross-file references."""
    files: Dict[str, FileParseResult] = field(default_factory=dict)
    references: List[CrossFileReference] = field(default_factory=list)
    diagnostics: List[ParseDiagnostic] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not any(d.severity == "error" for d in self.diagnostics)

    def references_for(self, filename: str) -> List[CrossFileReference]:
        """References originating in one file."""
        return [r for r in self.references if r.source_file == filename]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "files": [f.to_dict() for f in self.files.values()],
            "references": [r.to_dict() for r in self.references],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "success": self.success,
        }


FileInput = Union[Mapping[str, str], Iterable[Tuple[str, str]]]


def parse_files(files: FileInput, config: Optional[ParserConfig] = None) -> BatchResult:
    """
    Parse a batch of files.

    Args:
        files: Mapping (or sequence of pairs) filename -> source text,
               processed in the order given
        config: Parser configuration

    Returns:
        BatchResult with one FileParseResult per file and every
        cross-file reference found
    """
    items = files.items() if isinstance(files, Mapping) else files
    session = ParseSession(config)
    results: Dict[str, FileParseResult] = {}

    for filename, text in items:
        dialect = mode_from_filename(filename)
        parsed = parse_source(text, mode=dialect, filename=filename, session=session)
        results[filename] = FileParseResult(filename, dialect, parsed.nodes, parsed.diagnostics)
        logger.debug("Parsed %s as %s: %d declarations", filename, dialect, len(parsed.nodes))

    session.current_file = None
    references = extract_references(results)
    logger.info("Parsed %d files: %d cross-file references, %d diagnostics",
                len(results), len(references), len(session.diagnostics))
    return BatchResult(results, references, list(session.diagnostics))


def parse_paths(paths: Iterable[Union[str, Path]], config: Optional[ParserConfig] = None) -> BatchResult:
    """Read files from disk and parse them as one batch. Unreadable files are reported and skipped."""
    sources: List[Tuple[str, str]] = []
    unreadable: List[ParseDiagnostic] = []
    for path in paths:
        try:
            sources.append((str(path), read_source(path)))
        except OSError as e:
            logger.warning("Cannot read %s: %s", path, e)
            unreadable.append(ParseDiagnostic(
                message=f"Cannot read file: {e}",
                filename=str(path),
                code="READ_ERROR",
            ))
    batch = parse_files(sources, config)
    batch.diagnostics = unreadable + batch.diagnostics
    return batch


def extract_references(files: Mapping[str, FileParseResult]) -> List[CrossFileReference]:
    """
    Walk every tree and collect cross-file references.

    Read-only: no node is modified. References are ordered by file, then by
    depth-first position in the tree.
    """
    references = []
    for filename, result in files.items():
        for node in walk_all(result.nodes):
            reference = _reference_for(filename, node)
            if reference is not None:
                references.append(reference)
    return references


def _reference_for(filename: str, node: Node) -> Optional[CrossFileReference]:
    if node.type in IMPORT_TYPES:
        path = node.fields.get("PATH", "")
        if "::" in path:
            return CrossFileReference(filename, path, IMPORT)
    elif node.type == "rust_mod_file":
        name = node.fields.get("NAME", "")
        if name:
            return CrossFileReference(filename, name, IMPORT)
    elif node.type in SHADER_TYPES:
        shader_path = node.fields.get("SHADER_PATH", "")
        if shader_path:
            return CrossFileReference(filename, shader_path, SHADER_HANDLE)
    return None
