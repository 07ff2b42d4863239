"""Argument parsing functionality for thinrun."""

import argparse
import sys
from typing import List, Optional, Sequence, Tuple


def build_parser() -> argparse.ArgumentParser:
    """Build the parser for launcher-level options."""
    parser = argparse.ArgumentParser(
        prog="thinrun",
        description=(
            "thinrun - resolve an application's declared dependencies and launch it"
        ),
        epilog=(
            "Launcher properties are given as --thin.<key>=<value> (e.g. --thin.dryrun, "
            "--thin.classpath, --thin.main=pkg.mod:main). Other arguments, and everything "
            "after '--', are passed to the application."
        ),
        add_help=True,
        allow_abbrev=False,
    )
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default=None)
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("--config",
                        dest="CONFIG",
                        help="Path to a YAML file of launcher properties",
                        action="store",
                        type=str)
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> Tuple[argparse.Namespace, List[str]]:
    """Parse launcher options.

    Returns:
        The namespace and the remaining arguments (properties and application
        arguments), with any ``--`` separator and what follows kept intact.
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    if "--" in argv:
        cut = argv.index("--")
        head, tail = argv[:cut], argv[cut:]
    else:
        head, tail = argv, []
    namespace, remaining = build_parser().parse_known_args(head)
    return namespace, remaining + tail
