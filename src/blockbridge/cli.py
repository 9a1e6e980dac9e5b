"""
CLI entry point for blockbridge.

Usage:
    blockbridge parse <file>             Parse a file and show a block summary
    blockbridge xml <file>               Convert a file to Blockly XML
    blockbridge batch <file>...          Parse files together, show cross-file references
    blockbridge detect <file>...         Show the dialects detected in each file
    blockbridge config                   Show the effective configuration

Every command accepts --config PATH and --log-level LEVEL. The exit code
is 1 when any error diagnostic was produced.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from blockbridge import __version__
from blockbridge.config import ParserConfig, get_config, write_default_config


MODE_CHOICES = ['auto', 'mixed', 'rust', 'wgsl', 'bevy', 'biospheres']


def _load_config(args) -> ParserConfig:
    if args.config:
        return ParserConfig(Path(args.config))
    return get_config()


def _setup_logging(args, config: ParserConfig) -> None:
    level_name = (args.log_level or config.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )


def _print_diagnostics(diagnostics) -> None:
    for diagnostic in diagnostics:
        print(str(diagnostic), file=sys.stderr)


def _summarize(nodes, limit: int = 20):
    for node in nodes[:limit]:
        name = node.fields.get('NAME') or node.fields.get('PATH') or node.fields.get('TYPE') or ''
        print(f"  - {node.type} {name}".rstrip())
    if len(nodes) > limit:
        print(f"  ... and {len(nodes) - limit} more")


def cmd_parse(args, config):
    """Parse a file and show a block summary."""
    from blockbridge.parser import count_nodes, parse_file

    result = parse_file(args.file, mode=args.mode, config=config)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(f"Parsed: {args.file}")
        print(f"Dialect: {result.dialect}")
        print(f"Top-level blocks: {len(result.nodes)} ({count_nodes(result.nodes)} total)")
        if args.verbose:
            _summarize(result.nodes)

    _print_diagnostics(result.diagnostics)
    return 0 if result.success else 1


def cmd_xml(args, config):
    """Convert a file to Blockly XML."""
    from blockbridge.parser import nodes_to_xml, parse_file

    result = parse_file(args.file, mode=args.mode, config=config)
    xml = nodes_to_xml(result.nodes, filename=Path(args.file).name or config.default_filename)

    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            f.write(xml)
        print(f"Wrote: {args.output}")
    else:
        print(xml)

    _print_diagnostics(result.diagnostics)
    return 0 if result.success else 1


def cmd_batch(args, config):
    """Parse files together and show cross-file references."""
    from blockbridge.parser import parse_paths

    batch = parse_paths(args.files, config=config)

    if args.json:
        print(json.dumps(batch.to_dict(), indent=2))
    else:
        for filename, result in batch.files.items():
            print(f"{filename} [{result.dialect}]: {len(result.nodes)} blocks")
        if batch.references:
            print(f"\nCross-file references ({len(batch.references)}):")
            for ref in batch.references:
                print(f"  {ref.source_file} -> {ref.target_path} ({ref.kind})")

    _print_diagnostics(batch.diagnostics)
    return 0 if batch.success else 1


def cmd_detect(args, config):
    """Show the dialects detected in each file."""
    from blockbridge.parser import detect_modes, mode_from_filename, read_source

    status = 0
    for filename in args.files:
        try:
            text = read_source(filename)
        except OSError as e:
            print(f"Cannot read {filename}: {e}", file=sys.stderr)
            status = 1
            continue
        modes = ", ".join(sorted(detect_modes(text)))
        print(f"{filename}: {modes} (from filename: {mode_from_filename(filename)})")
    return status


def cmd_config(args, config):
    """Show the effective configuration, or write a default config file."""
    if args.write:
        path = write_default_config(Path(args.write))
        print(f"Wrote: {path}")
        return 0
    for key, value in config.to_dict().items():
        print(f"{key}: {value}")
    return 0


def main(argv=None):
    """Main CLI entry point."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--config', help='Path to a YAML configuration file')
    common.add_argument('--log-level', help='Logging level (DEBUG, INFO, WARNING, ...)')

    parser = argparse.ArgumentParser(
        prog='blockbridge',
        description="Convert Rust / WGSL / Bevy source into editor blocks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    blockbridge parse src/main.rs -v
    blockbridge xml shaders/particles.wgsl -o particles.xml
    blockbridge batch src/main.rs src/physics.rs shaders/fluid.wgsl
    blockbridge detect src/cell_systems.rs
"""
    )
    parser.add_argument('--version', action='version', version=f'blockbridge {__version__}')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # parse
    parse_p = subparsers.add_parser('parse', parents=[common], help='Parse a source file')
    parse_p.add_argument('file', help='File to parse')
    parse_p.add_argument('--mode', choices=MODE_CHOICES, default='auto')
    parse_p.add_argument('--json', action='store_true', help='Print the block tree as JSON')
    parse_p.add_argument('-v', '--verbose', action='store_true')
    parse_p.set_defaults(func=cmd_parse)

    # xml
    xml_p = subparsers.add_parser('xml', parents=[common], help='Convert a source file to Blockly XML')
    xml_p.add_argument('file', help='File to convert')
    xml_p.add_argument('--mode', choices=MODE_CHOICES, default='auto')
    xml_p.add_argument('-o', '--output', help='Write XML to this file')
    xml_p.set_defaults(func=cmd_xml)

    # batch
    batch_p = subparsers.add_parser('batch', parents=[common], help='Parse several files together')
    batch_p.add_argument('files', nargs='+', help='Files to parse')
    batch_p.add_argument('--json', action='store_true')
    batch_p.set_defaults(func=cmd_batch)

    # detect
    detect_p = subparsers.add_parser('detect', parents=[common], help='Detect source dialects')
    detect_p.add_argument('files', nargs='+', help='Files to inspect')
    detect_p.set_defaults(func=cmd_detect)

    # config
    config_p = subparsers.add_parser('config', parents=[common], help='Show configuration')
    config_p.add_argument('--write', metavar='PATH', help='Write a default config file to PATH')
    config_p.set_defaults(func=cmd_config)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    config = _load_config(args)
    _setup_logging(args, config)
    return args.func(args, config)


if __name__ == "__main__":
    sys.exit(main())
