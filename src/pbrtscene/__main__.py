#!/usr/bin/env python3
"""
CLI for the PBRT scene reader.

Usage:
    python -m pbrtscene check FILE [--strict] [--json]
    python -m pbrtscene tree FILE [--no-components]
    python -m pbrtscene flatten FILE
    python -m pbrtscene dump FILE [--omit-long-values]

Examples:
    # Report warnings and a summary of what the scene declares
    python -m pbrtscene check scenes/kitchen/scene.pbrt

    # Print the node tree with components
    python -m pbrtscene tree scenes/kitchen/scene.pbrt.gz

    # Print the scene with all Includes spliced in
    python -m pbrtscene flatten scenes/kitchen/scene.pbrt > flat.pbrt

    # Print every directive, abbreviating long arrays
    python -m pbrtscene dump scenes/kitchen.tar.gz --omit-long-values
"""

import argparse
import json
import logging
import sys
from pathlib import Path


def build_options(args):
    """ParseOptions from --config and command-line flags."""
    from .config import ParseOptions, load_options

    options = load_options(args.config) if args.config else ParseOptions()
    return options.merged(
        strict_numbers=True if args.strict else None,
        expand_includes=False if args.no_includes else None,
        omit_long_values=True if getattr(args, 'omit_long_values', False) else None,
    )


def print_diagnostics(collector, as_json: bool = False) -> None:
    if as_json:
        print(json.dumps(collector.to_json(), indent=2))
    elif len(collector):
        print(collector.format_all(), file=sys.stderr)


def cmd_check(args, options):
    """Parse a scene and report warnings and statistics."""
    from .errors import DiagnosticCollector
    from .runtime.loader import process_scene
    from .runtime.target import MultiTarget, StatisticsTarget
    from .scene.target import SceneTarget

    diagnostics = DiagnosticCollector()
    scene, stats = process_scene(args.file, MultiTarget([SceneTarget(), StatisticsTarget()]),
                                 options, diagnostics)
    scene.diagnostics = diagnostics

    if args.json:
        report = diagnostics.to_json()
        report["summary"] = scene.summary()
        report["statistics"] = stats
        print(json.dumps(report, indent=2))
        return 0

    print_diagnostics(diagnostics)
    summary = scene.summary()
    print(f"{args.file}: OK")
    print(f"  nodes:      {summary['nodes']}")
    print(f"  shapes:     {sum(stats['shapes'].values())} "
          + " ".join(f"{k}={v}" for k, v in sorted(stats['shapes'].items())))
    print(f"  lights:     {sum(stats['lights'].values())} "
          + " ".join(f"{k}={v}" for k, v in sorted(stats['lights'].items())))
    print(f"  objects:    {stats['objects']} ({stats['instances']} instances)")
    print("  resources:  " + " ".join(f"{k}={v}" for k, v in summary['resources'].items()))
    print(f"  warnings:   {diagnostics.warning_count}")
    return 0


def cmd_tree(args, options):
    """Print the scene graph."""
    from .runtime.loader import load_scene

    scene = load_scene(args.file, options)
    print_diagnostics(scene.diagnostics)
    print(scene.graph.format_tree(show_components=not args.no_components))
    return 0


def cmd_flatten(args, options):
    """Print the include-expanded scene text."""
    from .errors import DiagnosticCollector
    from .include import resolve_includes

    diagnostics = DiagnosticCollector()
    text = resolve_includes(args.file, options, diagnostics)
    print_diagnostics(diagnostics)
    sys.stdout.write(text)
    return 0


def cmd_dump(args, options):
    """Print every parsed directive, one per line."""
    from .errors import DiagnosticCollector
    from .runtime.loader import read_directives

    diagnostics = DiagnosticCollector()
    directives, _ = read_directives(args.file, options, diagnostics)
    print_diagnostics(diagnostics)
    for directive in directives:
        print(directive.format(options.omit_long_values, options.long_value_threshold))
    return 0


COMMANDS = {
    'check': cmd_check,
    'tree': cmd_tree,
    'flatten': cmd_flatten,
    'dump': cmd_dump,
}


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog='python -m pbrtscene',
        description='PBRT scene-description reader',
    )
    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help='Log more (repeat for debug output)')

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('file', help='Scene file (.pbrt, .pbrt.gz or .tar.gz)')
    common.add_argument('--strict', action='store_true',
                        help='Treat malformed numbers and bools as errors')
    common.add_argument('--config', metavar='FILE', help='YAML file with parse options')
    common.add_argument('--no-includes', action='store_true',
                        help='Do not expand Include directives')

    subparsers = parser.add_subparsers(dest='action', required=True)

    check_parser = subparsers.add_parser('check', parents=[common], help='Check a scene for errors')
    check_parser.add_argument('--json', action='store_true', help='Machine-readable output')

    tree_parser = subparsers.add_parser('tree', parents=[common], help='Print the scene graph')
    tree_parser.add_argument('--no-components', action='store_true', help='Only print node names')

    subparsers.add_parser('flatten', parents=[common], help='Print the include-expanded scene')

    dump_parser = subparsers.add_parser('dump', parents=[common], help='Print parsed directives')
    dump_parser.add_argument('--omit-long-values', action='store_true',
                             help='Abbreviate long parameter arrays')

    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format='%(levelname)s %(name)s: %(message)s')
    # diagnostics are printed by the commands themselves
    logging.getLogger('pbrtscene.errors').setLevel(logging.ERROR if args.verbose == 0 else level)

    from .config import ConfigError
    from .errors import SceneError

    if not Path(args.file).exists():
        print(f"Error: File not found: {args.file}", file=sys.stderr)
        return 1

    try:
        options = build_options(args)
    except (ConfigError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    try:
        return COMMANDS[args.action](args, options)
    except SceneError as e:
        print(e, file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
