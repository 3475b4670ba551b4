"""Command-line interface for mock-synthesizer."""

import argparse
import logging
import sys
from pathlib import Path

from mock_synthesizer.declaration_parser import parse_interface_file
from mock_synthesizer.errors import DeclarationError
from mock_synthesizer.generator import GeneratorOptions, generate_module
from mock_synthesizer.planner import build_plan

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Configure logging to stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="mock-synthesizer",
        description="Generate test doubles from Python interface declarations",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log generation details to stderr",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # generate subcommand
    generate_parser = subparsers.add_parser(
        "generate",
        help="Write the mock module for an interface",
    )
    generate_parser.add_argument(
        "source",
        help="Python file declaring the interface",
    )
    generate_parser.add_argument(
        "--interface",
        "-i",
        required=True,
        help="Name of the interface class",
    )
    generate_parser.add_argument(
        "--output",
        "-o",
        help="Output path for the generated module (default: stdout)",
    )
    generate_parser.add_argument(
        "--import-from",
        help="Module the generated code imports the interface from",
    )
    generate_parser.add_argument(
        "--prefix",
        default="Mock",
        help="Prefix for the mock class name (default: Mock)",
    )

    # tags subcommand
    tags_parser = subparsers.add_parser(
        "tags",
        help="Print the method tags and shapes of an interface as JSON",
    )
    tags_parser.add_argument(
        "source",
        help="Python file declaring the interface",
    )
    tags_parser.add_argument(
        "--interface",
        "-i",
        required=True,
        help="Name of the interface class",
    )

    return parser


def run_generate(
    source: str,
    interface: str,
    output: str | None,
    import_from: str | None,
    prefix: str,
) -> int:
    """Run the generate command.

    Args:
        source: Path of the file declaring the interface
        interface: Name of the interface class
        output: Output path, or None for stdout
        import_from: Module to import the interface from in the output
        prefix: Mock class name prefix

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    declaration = parse_interface_file(Path(source), interface)
    options = GeneratorOptions(mock_prefix=prefix, interface_import=import_from)
    module_source = generate_module(build_plan(declaration, prefix), options)

    if output is None:
        print(module_source, end="")
        return 0

    with open(output, "w") as f:
        f.write(module_source)
    logger.info(f"Mock written to {output}")
    print(f"{prefix}{interface} written to: {output}", file=sys.stderr)
    return 0


def run_tags(source: str, interface: str) -> int:
    """Run the tags command."""
    declaration = parse_interface_file(Path(source), interface)
    print(build_plan(declaration).to_json())
    return 0


def run_cli(args: list[str]) -> int:
    """Run the CLI with the given arguments.

    Args:
        args: Command-line arguments (without program name)

    Returns:
        Exit code (0 for success, non-zero for fatal errors)
    """
    try:
        parsed = create_parser().parse_args(args)
    except SystemExit as e:
        return e.code if e.code else 1

    setup_logging(parsed.verbose)

    if parsed.command is None:
        # No command - show help
        create_parser().print_help(sys.stderr)
        return 1

    try:
        if parsed.command == "generate":
            return run_generate(
                parsed.source,
                parsed.interface,
                parsed.output,
                parsed.import_from,
                parsed.prefix,
            )
        elif parsed.command == "tags":
            return run_tags(parsed.source, parsed.interface)
    except (DeclarationError, OSError) as e:
        logger.error(f"Generation failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 1


def main():
    """Entry point for the CLI."""
    exit_code = run_cli(sys.argv[1:])
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
