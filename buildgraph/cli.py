# SPDX-License-Identifier: MIT
"""Command-line interface for buildgraph.

    buildgraph MODE SOURCE_DIR BUILD_DIR_PREFIX WORKING_DIR [FLAG[=VALUE] ...]

runs the generator and prints the output document as JSON. ``--ninja-file``
additionally writes the generated build file. Both are only written once
generation has fully succeeded.
"""

from __future__ import annotations

import argparse
import io
import logging
import sys
from pathlib import Path

from buildgraph.core.errors import BuildGraphError
from buildgraph.core.flags import parse_flag_args
from buildgraph.generators.generator import write_atomically
from buildgraph.main import run_generator
from buildgraph.protocol import GeneratorInput, Mode

# Set up logging
logger = logging.getLogger("buildgraph")


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """Configure logging based on verbosity level."""
    if debug:
        level = logging.DEBUG
        fmt = "%(levelname)s: %(name)s: %(message)s"
    elif verbose:
        level = logging.INFO
        fmt = "%(levelname)s: %(message)s"
    else:
        level = logging.WARNING
        fmt = "%(levelname)s: %(message)s"

    logging.basicConfig(level=level, format=fmt)


def input_from_args(args: argparse.Namespace) -> GeneratorInput:
    """Build the generator input from parsed arguments.

    Raises:
        BuildGraphError: If the input file or a flag argument is invalid.
    """
    if args.input:
        inp = GeneratorInput.load(args.input)
    else:
        inp = GeneratorInput(
            mode=Mode(args.mode),
            source_dir=str(Path(args.source_dir).absolute()),
            build_dir_prefix=str(Path(args.build_dir_prefix).absolute()),
            working_dir=str(Path(args.working_dir).absolute()),
            cmdline_flags=parse_flag_args(args.flags),
        )
    if args.run_arg:
        inp.run_args = list(args.run_arg)
    if args.test_arg:
        inp.test_args = list(args.test_arg)
    if args.select:
        inp.positive_patterns = list(args.select)
    elif not inp.positive_patterns:
        inp.positive_patterns = [".*"]
    if args.exclude:
        inp.negative_patterns = list(args.exclude)
    if args.no_persist_flags:
        inp.persist_flags = False
    return inp


def cmd_generate(args: argparse.Namespace) -> int:
    """Run the generator and write its results."""
    setup_logging(args.verbose, args.debug)

    try:
        inp = input_from_args(args)
        output = run_generator(inp)

        if args.ninja_file:
            if not inp.mode.generates:
                logger.warning("Mode '%s' does not generate a build file", inp.mode.value)
            else:
                write_atomically(Path(args.ninja_file), output.ninja_file)
                logger.info("Wrote %s", args.ninja_file)

        buffer = io.StringIO()
        output.dump(buffer)
        if args.output == "-":
            sys.stdout.write(buffer.getvalue())
        else:
            write_atomically(Path(args.output), buffer.getvalue())
            logger.info("Wrote %s", args.output)
    except BuildGraphError as e:
        logger.error("%s", e)
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the buildgraph CLI."""
    parser = argparse.ArgumentParser(
        prog="buildgraph",
        description="Generate Ninja build files from BUILD.py targets.",
    )
    from buildgraph import __version__

    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--debug", action="store_true", help="Debug output")
    parser.add_argument(
        "-i", "--input", metavar="FILE", help="Read the invocation from a JSON file"
    )
    parser.add_argument(
        "-o",
        "--output",
        default="-",
        metavar="FILE",
        help="Where to write the output document (default: stdout)",
    )
    parser.add_argument(
        "--ninja-file", metavar="FILE", help="Also write the generated build file"
    )
    parser.add_argument(
        "--select",
        action="append",
        metavar="PATTERN",
        help="Select targets matching PATTERN (default: all)",
    )
    parser.add_argument(
        "--exclude",
        action="append",
        metavar="PATTERN",
        help="Exclude targets matching PATTERN (wins over --select)",
    )
    parser.add_argument(
        "--run-arg", action="append", metavar="ARG", help="Argument for run targets"
    )
    parser.add_argument(
        "--test-arg", action="append", metavar="ARG", help="Argument for test targets"
    )
    parser.add_argument(
        "--no-persist-flags",
        action="store_true",
        help="Do not store flag values for the next run",
    )
    parser.add_argument(
        "mode", nargs="?", choices=[m.value for m in Mode], help="Generator mode"
    )
    parser.add_argument("source_dir", nargs="?", help="Workspace source directory")
    parser.add_argument("build_dir_prefix", nargs="?", help="Build directory prefix")
    parser.add_argument("working_dir", nargs="?", help="Directory for printed paths")
    parser.add_argument(
        "flags", nargs="*", help="Flag values (NAME=VALUE, or NAME for true)"
    )

    args = parser.parse_args(argv)

    if not args.input and not all(
        (args.mode, args.source_dir, args.build_dir_prefix, args.working_dir)
    ):
        parser.error(
            "MODE, SOURCE_DIR, BUILD_DIR_PREFIX and WORKING_DIR are required "
            "unless --input is given"
        )

    return cmd_generate(args)


if __name__ == "__main__":
    sys.exit(main())
