"""thinrun - launch an application against its resolved dependencies.

    Returns:
        int: Exit code (the application's own status in run mode)
"""
import logging
import sys

import yaml

from args import parse_args
from constants import ConfigKeys, ExitCodes
from errors import ThinrunError
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from launcher import Launcher, LaunchEnvironment

logger = logging.getLogger("thinrun")


def _fail(kind: str, message: str, code: ExitCodes) -> int:
    sys.stderr.write(f"{kind}: {message}\n")
    return code.value


def run(argv=None) -> int:
    """Parse arguments, launch, and return the exit status without exiting."""
    args, remaining = parse_args(argv)
    configure_logging(args.LOG_LEVEL, args.LOG_FILE)

    try:
        env, app_args = LaunchEnvironment.from_command_line(remaining, args.CONFIG)
    except (OSError, ValueError, yaml.YAMLError) as e:
        return _fail(type(e).__name__, str(e), ExitCodes.FILE_ERROR)

    if env.flag(ConfigKeys.DEBUG):
        configure_logging("DEBUG", args.LOG_FILE, stream=sys.stdout)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI started",
            extra=extra_context(event="function_entry", component="cli", action="main")
        )

    try:
        code = Launcher(env).launch(app_args)
    except ThinrunError as e:
        logger.debug("Launch failed", exc_info=True)
        return _fail(e.kind, str(e), e.exit_code)
    except FileNotFoundError as e:
        return _fail("FileNotFoundError", f"{e.filename or e}", ExitCodes.FILE_ERROR)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI finished",
            extra=extra_context(event="function_exit", component="cli", action="main",
                                outcome="success" if code == 0 else "failure")
        )
    return code


def main(argv=None) -> None:
    """Console script entry point."""
    sys.exit(run(argv))


if __name__ == "__main__":
    main()
