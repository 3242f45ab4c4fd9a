"""CLI entry point."""

import os
import shlex
import sys
from typing import Optional

from cli.constants import HELP_TEXT
from cli.parser import ParseError, parse_command
from cli.repl import dispatch_command, repl_loop
from common.logging_config import setup_logging


def run_once(args: list[str]) -> int:
    """
    Run a single command given as command-line arguments.

    Returns:
        Process exit code
    """
    if args[0] in ("help", "-h", "--help"):
        print(HELP_TEXT)
        return 0
    try:
        cmd_obj = parse_command(shlex.join(args))
    except ParseError as e:
        print(f"Error: {e}")
        print(HELP_TEXT)
        return 2
    result = dispatch_command(cmd_obj)
    print(result)
    return 1 if result.startswith("Error") else 0


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for CLI."""
    args = list(sys.argv[1:] if argv is None else argv)
    debug = '--debug' in args
    if debug:
        args.remove('--debug')

    log_level = 'DEBUG' if debug else os.getenv('LOG_LEVEL', 'INFO')
    logger = setup_logging('cli', log_level=log_level)

    if debug:
        logger.info("Debug logging enabled")

    logger.info("CLI starting...")
    try:
        if args:
            return run_once(args)
        repl_loop()
        return 0
    except Exception as e:
        logger.error(f"CLI error: {e}", exc_info=True)
        raise
    finally:
        logger.info("CLI exiting")


if __name__ == "__main__":
    sys.exit(main())
