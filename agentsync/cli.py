#!/usr/bin/env python3
"""
Command Line Interface for agentsync

Provides the ``sync``, ``dry-run`` and ``check`` commands and maps every
failure to a message on stderr and a non-zero exit code.
"""

import argparse
import sys
from typing import List, Optional

from .config import (
    DEFAULT_CONFIG_FILENAME,
    DEFAULT_CONFIG_PATH,
    DEFAULT_TEMPLATE_PATH,
    load_config_with_default_fallback,
    resolve_template_path,
)
from .errors import AgentSyncError, UsageError
from .sync import TemplateSync, read_template


COMMANDS = ("sync", "dry-run", "check")

EPILOG = f"""\
Defaults (when no --config is provided):
  1) {DEFAULT_CONFIG_PATH}
  2) ./{DEFAULT_CONFIG_FILENAME}

Exit codes:
  0  success (check: nothing would change)
  1  error, or check found pending changes
  2  no enabled targets
"""


class _ParserExit(Exception):
    """Raised instead of sys.exit when argparse wants to stop, e.g. after -h."""

    def __init__(self, status: int):
        super().__init__(status)
        self.status = status


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that reports problems instead of exiting the process."""

    def error(self, message):
        raise UsageError(f"{self.prog}: error: {message}")

    def exit(self, status=0, message=None):
        if message:
            print(message, file=sys.stderr, end="")
        raise _ParserExit(status)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="agentsync",
        allow_abbrev=False,
        description="Sync one agent instructions template to many targets",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")
    subparsers.add_parser("help", help="Show this help", allow_abbrev=False)

    command_help = {
        "sync": "Render the template and write every enabled target",
        "dry-run": "Show what sync would change without writing anything",
        "check": "Like dry-run, but exit 1 if any target would change",
    }
    for command in COMMANDS:
        sub = subparsers.add_parser(command, help=command_help[command], allow_abbrev=False)
        sub.add_argument("--config", metavar="<path>",
                         help=f"Path to config JSON (default: {DEFAULT_CONFIG_PATH})")
        sub.add_argument("--template", metavar="<path>",
                         help="Override template path (otherwise config.template_path / "
                              f"{DEFAULT_TEMPLATE_PATH} is used)")
        sub.add_argument("--strict", action="store_true",
                         help="Fail if any template variables are undefined")

    return parser


def run(parsed_args: argparse.Namespace) -> int:
    """
    Execute a parsed sync/dry-run/check command.

    Args:
        parsed_args: Namespace produced by build_parser()

    Returns:
        Exit code
    """
    dry_run = parsed_args.command == "dry-run"
    check = parsed_args.command == "check"

    config = load_config_with_default_fallback(parsed_args.config)
    template_path = resolve_template_path(config, parsed_args.template)
    template_text = read_template(template_path)

    engine = TemplateSync(config, template_path)
    report = engine.sync(
        template_text,
        dry_run=dry_run,
        check=check,
        strict=parsed_args.strict,
        report=lambda result: print(result.report_line()),
    )

    if check and report.changed:
        return 1
    return 0


def main(args: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        args: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    if args is None:
        args = sys.argv[1:]

    parser = build_parser()

    if not args or args[0] in ("help", "-h", "--help"):
        parser.print_help()
        return 0
    if args[0] not in COMMANDS:
        parser.print_help()
        return 1

    try:
        parsed_args = parser.parse_args(args)
        return run(parsed_args)
    except _ParserExit as e:
        return e.status
    except AgentSyncError as e:
        print(str(e), file=sys.stderr)
        return e.exit_code


if __name__ == "__main__":
    sys.exit(main())
