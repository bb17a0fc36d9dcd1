"""
PYXM CLI Main Module
====================

Command line access to compiled templates: list context tags, show the
generated code, render.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any, Dict, List, Optional

import orjson

from taggedpyxm import __version__
from taggedpyxm.core.config import Config
from taggedpyxm.engine.errors import TemplateError
from taggedpyxm.engine.template import TemplateEnvironment
from taggedpyxm.tags import ContextTagExtension, TaggedTemplate
from taggedpyxm.utils.logger import configure_logging


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="pyxm",
        description="PYXM template tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pyxm tags page.pyxm --path templates      List the context tags of a template
  pyxm tags page --include-parent --json    Include parent tags, print JSON
  pyxm compile page.pyxm                    Show the generated Python code
  pyxm render page.pyxm --var title=Hello   Render a template
        """,
    )

    parser.add_argument(
        "-v", "--version",
        action="version",
        version=f"PYXM {__version__}",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "name",
        help="Template name",
    )
    common.add_argument(
        "-p", "--path",
        action="append",
        dest="paths",
        metavar="DIR",
        help="Template directory (repeatable, default: current directory)",
    )
    common.add_argument(
        "--config",
        metavar="FILE",
        help="Python configuration file",
    )
    common.add_argument(
        "--log-level",
        help="Log level (overrides logging.level)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Tags command
    tags_parser = subparsers.add_parser(
        "tags",
        parents=[common],
        help="List the context tags of a template",
    )
    tags_parser.add_argument(
        "--include-parent",
        action="store_true",
        help="Prepend the tags of the parent template",
    )
    tags_parser.add_argument(
        "--json",
        action="store_true",
        help="Print tags as a JSON array",
    )

    # Compile command
    subparsers.add_parser(
        "compile",
        parents=[common],
        help="Print the generated Python code of a template",
    )

    # Render command
    render_parser = subparsers.add_parser(
        "render",
        parents=[common],
        help="Render a template",
    )
    render_parser.add_argument(
        "--var",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Context variable (repeatable)",
    )

    return parser


def cli(args: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        args: Command line arguments (uses sys.argv if None)

    Returns:
        Exit code
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return 0

    # Route to command handler
    handlers = {
        "tags": handle_tags,
        "compile": handle_compile,
        "render": handle_render,
    }

    handler = handlers.get(parsed.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        return handler(parsed)
    except KeyboardInterrupt:
        print("\nAborted.")
        return 130
    except (TemplateError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def create_environment(args: argparse.Namespace) -> TemplateEnvironment:
    """Build the environment described by the common options."""
    config = Config()
    if args.config:
        config.load_file(args.config)
    if args.log_level:
        config.set("logging.level", args.log_level)

    configure_logging(
        level=config.get_str("logging.level", "INFO"),
        format=config.get_str("logging.format", "text"),
    )

    return TemplateEnvironment(
        *(args.paths or ["."]),
        config=config,
        extensions=[ContextTagExtension()],
    )


def handle_tags(args: argparse.Namespace) -> int:
    """Handle tags command."""
    compiled = create_environment(args).load_compiled(args.name)
    if not isinstance(compiled, TaggedTemplate):
        print(f"Error: {args.name} has no context tags accessor", file=sys.stderr)
        return 1

    tags = compiled.get_context_tags(args.include_parent)
    if args.json:
        print(orjson.dumps(tags).decode("utf-8"))
    else:
        for tag in tags:
            print(tag)
    return 0


def handle_compile(args: argparse.Namespace) -> int:
    """Handle compile command."""
    compiled = create_environment(args).load_compiled(args.name)
    print(compiled.render_code, end="")
    return 0


def parse_vars(pairs: List[str]) -> Dict[str, Any]:
    """Parse ``KEY=VALUE`` options into a context dict."""
    context: Dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid --var {pair!r}, expected KEY=VALUE")
        context[key] = value
    return context


def handle_render(args: argparse.Namespace) -> int:
    """Handle render command."""
    env = create_environment(args)
    context = parse_vars(args.var)
    print(asyncio.run(env.render(args.name, context)))
    return 0


def main() -> None:
    """Main entry point."""
    sys.exit(cli())


if __name__ == "__main__":
    main()
