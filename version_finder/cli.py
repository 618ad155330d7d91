"""
Command-line entry point.

Usage:
    version-finder [-s] [-d] <program-name>
    version-finder --scan DIRECTORY [--undetermined-only] [-j N]
"""

from __future__ import annotations

import argparse
import os
import sys
from dataclasses import replace

from . import __version__
from .config import load_config, validate_config
from .errors import PrivilegeSetupError
from .logging_config import get_logger, setup_logging
from .pipeline import VersionFinder
from .render import EXIT_FAILURE, EXIT_SUCCESS, EXIT_USAGE, exit_code, format_report, format_short
from .scan import scan_directory


EPILOG = """\
Runs the program as a restricted user (default 'versionchecker') through
passwordless sudo, with a minimal environment and a timeout.

Examples:
  version-finder python
  version-finder --short git
  version-finder /usr/local/bin/node
  version-finder --scan /usr/bin --undetermined-only

Exit Codes:
  0  Success (version found)
  1  Error (program not found, permissions error, prerequisites not met, version undetermined)
  2  Invalid usage

Methods Tried:
  1. Common version flags (--version, -v, -V, etc.)
  2. Help output analysis (--help, -h)
  3. Package manager information (dpkg, brew, pkg)
  4. Binary string analysis
  5. No-argument execution (less reliable)
"""


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="version-finder",
        description="Find version information for CLI programs.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v", "--version",
        action="version",
        version=f"%(prog)s {__version__}",
        help="Display version and exit",
    )
    parser.add_argument(
        "-s", "--short",
        action="store_true",
        help="Output only program name and version (e.g., 'git 2.34.1')",
    )
    parser.add_argument(
        "-d", "--debug",
        action="store_true",
        help="Enable verbose debug output to stderr",
    )
    parser.add_argument(
        "-c", "--config",
        metavar="FILE",
        help="Configuration file (YAML)",
    )
    parser.add_argument(
        "-u", "--user",
        help="Restricted user to run programs as",
    )
    parser.add_argument(
        "-t", "--timeout",
        type=float,
        metavar="SECONDS",
        help="Timeout for each program invocation",
    )
    parser.add_argument(
        "--scan",
        metavar="DIRECTORY",
        help="Check every file below DIRECTORY (short output)",
    )
    parser.add_argument(
        "--undetermined-only",
        action="store_true",
        help="With --scan, print only programs whose version is undetermined",
    )
    parser.add_argument(
        "-j", "--jobs",
        type=int,
        default=1,
        help="With --scan, number of programs examined in parallel",
    )
    parser.add_argument(
        "program",
        nargs="*",
        help="Program name or path",
    )
    return parser


def _print_privilege_error(error: PrivilegeSetupError) -> None:
    print(f"Error: Prerequisite failed: {error.message}", file=sys.stderr)
    if error.remediation:
        print(f"       {error.remediation}", file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.scan:
        if args.program:
            parser.error("a program name cannot be combined with --scan")
        if args.jobs < 1:
            parser.error("--jobs must be at least 1")
    elif not args.program:
        parser.error("program name not specified")
    elif len(args.program) > 1:
        parser.error("only one program name can be specified")

    debug = args.debug or os.environ.get("VERSION_FINDER_DEBUG", "0") == "1"
    quiet = (args.short or bool(args.scan)) and not debug
    setup_logging(
        verbose=debug,
        quiet=quiet,
        log_file=os.environ.get("VERSION_FINDER_LOG_FILE"),
    )
    logger = get_logger()

    try:
        config = load_config(args.config, verbose=debug)
        if args.user:
            config = replace(config, restricted_user=args.user)
        if args.timeout is not None:
            config = replace(config, timeout_seconds=args.timeout)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE

    for warning in validate_config(config):
        logger.warning(warning)

    finder = VersionFinder(config)

    try:
        if args.scan:
            try:
                detections = scan_directory(finder, args.scan, args.jobs, args.undetermined_only)
            except NotADirectoryError:
                print(f"Error: Not a directory: {args.scan}", file=sys.stderr)
                return EXIT_FAILURE
            for detection in detections:
                print(format_short(detection), flush=True)
            return EXIT_SUCCESS

        detection = finder.detect(args.program[0])
    except PrivilegeSetupError as e:
        logger.debug("Sandbox setup failed", exc_info=True)
        _print_privilege_error(e)
        return EXIT_FAILURE

    print(format_short(detection) if args.short else format_report(detection))
    return exit_code(detection)


def run() -> None:
    """Console script wrapper."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(130)
