from __future__ import annotations

import argparse
import os

from ccapproval.cli.mcp import configure_parser as configure_mcp
from ccapproval.cli.threads import configure_parser as configure_threads
from ccapproval.errors import ConfigurationError


def build_parser() -> argparse.ArgumentParser:
    from ccapproval import __version__

    parser = argparse.ArgumentParser(
        prog="ccapproval",
        description="Slack approval gate for agent tool calls (MCP permission prompt server)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
        help="Print version and exit",
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Print full traceback on errors (or set CCAPPROVAL_TRACE=1)",
    )
    subparsers = parser.add_subparsers(dest="command")

    configure_mcp(subparsers)
    configure_threads(subparsers)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 2

    want_trace = bool(getattr(args, "trace", False)) or os.environ.get("CCAPPROVAL_TRACE") in {
        "1",
        "true",
        "TRUE",
        "yes",
        "YES",
    }
    try:
        return int(args.func(args))
    except KeyboardInterrupt:
        # Keep Ctrl-C quiet by default.
        return 130
    except Exception as exc:
        if want_trace:
            from ccapproval.cli.ui import console

            console.print_exception()
        else:
            from ccapproval.cli.ui import print_error

            tip = "re-run with --trace to see the full traceback."
            if isinstance(exc, ConfigurationError):
                tip = "Export the missing variables or add them to ccapproval.toml under [slack]."
            elif isinstance(exc, FileNotFoundError) and "Configuration file" in str(exc):
                tip = "Check that your config file path is correct."

            print_error(type(exc).__name__, str(exc), tip=tip)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
