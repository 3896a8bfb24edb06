"""Main CLI entry point for deptree."""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .commands.stats import show_stats
from .drivers import DRIVERS, create_driver, detect_build_tool
from .exceptions import DeptreeError
from .formatters import OutputFormatter
from .models import DependencyTree
from .parsers import read_content
from .scanner import TreeScanner
from .tree_builder import MAX_TREE_DEPTH, DependencyTreeBuilder

logger = logging.getLogger(__name__)

# Log level names accepted by --loglevel; logging has no TRACE level
LOG_LEVELS = {
    'TRACE': logging.DEBUG,
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARN': logging.WARNING,
    'ERROR': logging.ERROR,
}


def setup_logging(verbose: bool = False, log_level: Optional[str] = None):
    """Configure logging based on verbosity flags."""
    if log_level:
        level = LOG_LEVELS.get(log_level.upper(), logging.WARNING)
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format='%(levelname)s: %(message)s'
    )


def format_tree(tree: DependencyTree, output_format: str) -> str:
    if output_format == 'json':
        return OutputFormatter.format_as_json(tree)
    elif output_format == 'sbom':
        return OutputFormatter.format_as_sbom(tree)
    return OutputFormatter.format_as_tree(tree)


def write_output(tree: DependencyTree, output_format: str, output_file: str) -> int:
    """Format the tree and write it to a file or stdout."""
    try:
        output = format_tree(tree, output_format)
    except Exception as e:
        logger.error(f"Error generating output: {e}")
        print(f"Error generating output: {e}", file=sys.stderr)
        return 1

    try:
        if output_file == '-':
            print(output, end='')
        else:
            with open(output_file, 'w') as f:
                f.write(output)
            logger.info(f"Output written to: {output_file}")
            print(f"Output written to: {output_file}")
    except OSError as e:
        logger.error(f"Error writing output: {e}")
        print(f"Error writing output: {e}", file=sys.stderr)
        return 1

    return 0


def load_tree(inputs: List[str], pkg_type: str, root_path: Optional[str], max_depth: int) -> DependencyTree:
    """Build a tree from per-module graph files or URLs that were generated earlier."""
    raw_graphs = [(source, read_content(source)) for source in inputs]
    project_dir = Path(root_path) if root_path else Path.cwd()
    builder = DependencyTreeBuilder(pkg_type, max_depth=max_depth)
    return builder.build_tree(raw_graphs, project_dir.resolve())


def handle_scan(args):
    """Handle the 'scan' subcommand."""
    setup_logging(args.verbose, args.loglevel)

    project_dir = Path(args.project_dir).resolve()
    if not project_dir.is_dir():
        print(f"Not a directory: {project_dir}", file=sys.stderr)
        return 1

    tool = args.tool or detect_build_tool(project_dir)
    if not tool:
        logger.error(f"Could not detect the build tool of {project_dir}")
        print(f"Could not detect the build tool of {project_dir}. Use --tool.", file=sys.stderr)
        return 1
    logger.info(f"Scanning {project_dir} (tool={tool})")

    try:
        driver = create_driver(tool, project_dir, executable=args.executable, init_script=args.init_script)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 1
    scanner = TreeScanner(project_dir, driver, max_depth=args.max_depth)

    try:
        tree = scanner.build_tree()
    except DeptreeError as e:
        logger.error(f"Error building dependency tree: {e}")
        print(f"Error building dependency tree: {e}", file=sys.stderr)
        return 1

    if tree is None:
        print(f"Could not scan {tool} project: {tool} is not installed", file=sys.stderr)
        return 1

    return write_output(tree, args.output_format, args.output)


def handle_build(args):
    """Handle the 'build' subcommand."""
    setup_logging(args.verbose, args.loglevel)

    try:
        tree = load_tree(args.inputs, args.pkg_type, args.root_path, args.max_depth)
    except (DeptreeError, OSError) as e:
        logger.error(f"Error building dependency tree: {e}")
        print(f"Error building dependency tree: {e}", file=sys.stderr)
        return 1

    return write_output(tree, args.output_format, args.output)


def handle_stats(args):
    """Handle the 'stats' subcommand."""
    setup_logging(args.verbose, args.loglevel)

    try:
        tree = load_tree(args.inputs, args.pkg_type, args.root_path, args.max_depth)
    except (DeptreeError, OSError) as e:
        logger.error(f"Error building dependency tree: {e}")
        print(f"Error building dependency tree: {e}", file=sys.stderr)
        return 1

    show_stats(tree)
    return 0


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--max-depth', type=int, default=MAX_TREE_DEPTH,
                        help=f'Maximum dependency nesting depth. Default: {MAX_TREE_DEPTH}')
    parser.add_argument('-v', '--verbose', action='store_true', help='Verbose output')
    parser.add_argument('--loglevel',
                        choices=list(LOG_LEVELS),
                        help='Set log level')


def _add_input_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('inputs', nargs='+', metavar='input',
                        help='Per-module dependency graph JSON files or URLs, in module order')
    parser.add_argument('--root-path', default=None,
                        help='Project directory the modules belong to (default: current directory)')
    parser.add_argument('--pkg-type', default='gradle',
                        help='Package type of the dependencies (gradle, npm). Default: gradle')


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog='deptree',
        description='Build canonical, scope-annotated dependency trees from build tool graphs'
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    subparsers = parser.add_subparsers(dest='command', help='Subcommands')

    format_choices = ['tree', 'json', 'sbom']

    # Scan command
    scan_parser = subparsers.add_parser('scan', help='Run the build tool and build the dependency tree')
    scan_parser.add_argument('project_dir', help='Project directory')
    scan_parser.add_argument('--tool', choices=sorted(DRIVERS), default=None,
                             help='Build tool (default: detected from project files)')
    scan_parser.add_argument('--executable', default=None,
                             help='Build tool executable (default: wrapper or PATH lookup)')
    scan_parser.add_argument('--init-script', default=None,
                             help='Gradle init script applying the dependency tree plugin')
    scan_parser.add_argument('--format', dest='output_format', default='tree', choices=format_choices,
                             help='Output format (tree, json, sbom). Default: tree')
    scan_parser.add_argument('--output', default='-', help='Output file (default: stdout)')
    _add_common_arguments(scan_parser)
    scan_parser.set_defaults(func=handle_scan)

    # Build command
    build_parser = subparsers.add_parser('build', help='Build the dependency tree from generated graph files')
    _add_input_arguments(build_parser)
    build_parser.add_argument('--format', dest='output_format', default='tree', choices=format_choices,
                              help='Output format (tree, json, sbom). Default: tree')
    build_parser.add_argument('--output', default='-', help='Output file (default: stdout)')
    _add_common_arguments(build_parser)
    build_parser.set_defaults(func=handle_build)

    # Stats command
    stats_parser = subparsers.add_parser('stats', help='Show dependency tree statistics')
    _add_input_arguments(stats_parser)
    _add_common_arguments(stats_parser)
    stats_parser.set_defaults(func=handle_stats)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        return args.func(args)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
