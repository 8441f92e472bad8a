#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Command-line interface for the LZ4 build orchestrator.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from . import __version__
from .builders.toolchain import Toolchain
from .core.assembler import plan_build
from .core.errors import Lz4BuildError
from .core.memory_routines import render_header
from .core.models import BuildConfiguration, BuildPlan, HeapMode, MemoryAccess, OptimizeMode
from .core.resolver import (
    OPTIONS,
    normalize_option_name,
    parse_assignments,
    resolve_configuration,
)
from .utils.config import OptionsFile


def setup_logging(args: argparse.Namespace) -> None:
    """Install loguru sinks according to the logging arguments."""
    logger.remove()

    log_level = args.log_level
    if args.verbose and log_level == "INFO":
        log_level = "DEBUG"

    if log_level in ["DEBUG", "TRACE"]:
        log_format = (
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        )
    else:
        log_format = (
            "<green>{time:HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<level>{message}</level>"
        )

    logger.add(sys.stderr, level=log_level, format=log_format, colorize=True)

    if args.log_file:
        logger.add(
            args.log_file,
            level=log_level,
            format=log_format,
            rotation="10 MB",
            retention=3,
            compression="gz",
        )

    logger.debug(f"Logging initialized at {log_level} level")


def _add_option_arguments(parser: argparse.ArgumentParser) -> None:
    options_group = parser.add_argument_group("Build Options")
    options_group.add_argument("--target", default=None,
                               help="Target triple (default: host)")
    options_group.add_argument("--optimize", default=None,
                               choices=[mode.value for mode in OptimizeMode],
                               help="Optimization mode (default: Debug)")
    options_group.add_argument("--static", action=argparse.BooleanOptionalAction, default=None,
                               help="Build the static library (default: on)")
    options_group.add_argument("--shared", action=argparse.BooleanOptionalAction, default=None,
                               help="Build the shared library (default: on)")
    options_group.add_argument("--strip", action=argparse.BooleanOptionalAction, default=None,
                               help="Strip debug symbols (default: off)")
    options_group.add_argument("--ubsan", action=argparse.BooleanOptionalAction, default=None,
                               help="Instrument with UBSanitizer (default: off)")
    options_group.add_argument("--tsan", action=argparse.BooleanOptionalAction, default=None,
                               help="Instrument with ThreadSanitizer (default: off)")
    options_group.add_argument("--freestanding", action=argparse.BooleanOptionalAction, default=None,
                               help="Build without libc (default: off)")
    options_group.add_argument("--heap-mode", dest="heap_mode", default=None,
                               help=f"Where to allocate internal buffers: "
                                    f"{', '.join(mode.value for mode in HeapMode)} (default: stack)")
    options_group.add_argument("--memory-access", dest="memory_access", default=None,
                               help=f"How to access unaligned memory: "
                                    f"{', '.join(mode.value for mode in MemoryAccess)} "
                                    f"(default: chosen by the library)")
    options_group.add_argument("-D", dest="assignments", action="append", default=[],
                               metavar="NAME=VALUE",
                               help="Set a build option, e.g. -Dfreestanding=true")

    config_group = parser.add_argument_group("Configuration")
    config_group.add_argument("--config", type=Path,
                              help="Load build options from a JSON/YAML/TOML/INI file")
    config_group.add_argument("--auto-config", action="store_true",
                              help="Look for lz4build.* in the current directory and its parents")


def _add_logging_arguments(parser: argparse.ArgumentParser) -> None:
    logging_group = parser.add_argument_group("Logging and Debugging")
    logging_group.add_argument("--verbose", action="store_true",
                               help="Enable verbose output")
    logging_group.add_argument("--log-level", dest="log_level",
                               choices=["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"],
                               default="INFO",
                               help="Set the logging level")
    logging_group.add_argument("--log-file", dest="log_file", type=Path,
                               help="Also log to this file")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lz4-build",
        description="Plan and build the LZ4 library under a matrix of build options",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Examples:\n"
               "  %(prog)s plan --freestanding --no-shared\n"
               "  %(prog)s plan -Dheap_mode=heap -Dmemory_access=packed_struct\n"
               "  %(prog)s macros > lz4_freestanding.h\n"
               "  %(prog)s build --upstream ./lz4 --output ./out --optimize ReleaseFast",
    )
    parser.add_argument("--version", action="version",
                        version=f"lz4-build v{__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    plan_parser = subparsers.add_parser("plan", help="Resolve options and print the build plan as JSON")
    _add_option_arguments(plan_parser)
    _add_logging_arguments(plan_parser)

    macros_parser = subparsers.add_parser("macros", help="Print the freestanding memory-routine header")
    _add_logging_arguments(macros_parser)

    options_parser = subparsers.add_parser("options", help="List build options and their defaults")
    _add_logging_arguments(options_parser)

    build_cmd = subparsers.add_parser("build", help="Compile and link every planned artifact")
    build_cmd.add_argument("--upstream", type=Path, required=True,
                           help="LZ4 source tree (containing lib/)")
    build_cmd.add_argument("--output", type=Path, default=Path("build/lib"),
                           help="Directory for the produced libraries")
    build_cmd.add_argument("--cc", default=None, help="C compiler (default: $CC or cc)")
    build_cmd.add_argument("--ar", default=None, help="Archiver (default: $AR or ar)")
    _add_option_arguments(build_cmd)
    _add_logging_arguments(build_cmd)

    return parser


def collect_options(args: argparse.Namespace) -> Dict[str, Any]:
    """
    Merge option sources: options file, then -D assignments, then explicit flags.
    """
    raw: Dict[str, Any] = {}

    config_path: Optional[Path] = args.config
    if config_path is None and args.auto_config:
        config_path = OptionsFile.discover(Path.cwd())
    if config_path is not None:
        raw.update(
            (normalize_option_name(name), value)
            for name, value in OptionsFile.load(config_path).items()
        )
        logger.info(f"Loaded build options from {config_path}")

    raw.update(parse_assignments(args.assignments))

    for name in OPTIONS:
        value = getattr(args, name, None)
        if value is not None:
            raw[name] = value
    return raw


def resolve_plan(args: argparse.Namespace) -> BuildPlan:
    configuration = resolve_configuration(collect_options(args))
    return plan_build(configuration)


def list_options() -> List[str]:
    defaults = BuildConfiguration()
    lines = []
    for name, (field_name, _) in OPTIONS.items():
        info = BuildConfiguration.model_fields[field_name]
        default = getattr(defaults, field_name)
        shown = "absent" if default is None else getattr(default, "value", default)
        lines.append(f"{name:<14} {info.description} (default: {shown})")
    return lines


def run(args: argparse.Namespace) -> int:
    match args.command:
        case "macros":
            sys.stdout.write(render_header())
            return 0
        case "options":
            print("\n".join(list_options()))
            return 0
        case "plan":
            plan = resolve_plan(args)
            print(json.dumps(plan.to_dict(), indent=2))
            return 0
        case "build":
            plan = resolve_plan(args)
            toolchain = Toolchain(cc=args.cc, ar=args.ar)
            outputs = toolchain.build(plan, args.upstream, args.output)
            for output in outputs:
                logger.info(f"{output.kind.value:<8} {output.path} ({output.objects} objects)")
            if outputs:
                logger.success(f"Built {len(outputs)} artifact(s)")
            return 0
    raise AssertionError(f"unhandled command {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main function to run the orchestrator from the command line."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args)

    try:
        return run(args)
    except Lz4BuildError as e:
        # already logged at ERROR when raised
        logger.debug(f"Build failed: {type(e).__name__}, context: {e.context.to_dict()}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Build interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
