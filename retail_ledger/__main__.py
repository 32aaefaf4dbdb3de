"""Retail Ledger command-line entry point.

Commands:
  retail-ledger console      Interactive login / topup / pay loop (default)
  retail-ledger serve        Start the HTTP API
"""

import argparse
import sys
from typing import List, Optional

from . import __version__
from .config import get_config
from .errors import LedgerInconsistency
from .logging_config import setup_logging


def cmd_console(args: argparse.Namespace) -> int:
    """Run the interactive console on stdin/stdout."""
    from .banking import build_service
    from .console import CommandConsole

    console = CommandConsole(build_service(get_config()))
    try:
        console.run()
    except LedgerInconsistency:
        return 2
    except KeyboardInterrupt:
        print("\nExiting, Thanks for using the application.")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the HTTP API server."""
    from .api import run_server

    run_server(host=args.host, port=args.port, config=get_config())
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="retail-ledger",
        description="Toy retail-banking ledger with debt netting",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", dest="log_level", help="Override LEDGER_LOG_LEVEL")
    parser.add_argument("--log-format", dest="log_format", choices=["json", "text"],
                        help="Override LEDGER_LOG_FORMAT")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    p_console = subparsers.add_parser("console", help="Interactive banking console")
    p_console.set_defaults(func=cmd_console)

    p_serve = subparsers.add_parser("serve", help="Start the HTTP API")
    p_serve.add_argument("--host", help="Bind address (default: LEDGER_API_HOST)")
    p_serve.add_argument("--port", type=int, help="Bind port (default: LEDGER_API_PORT)")
    p_serve.set_defaults(func=cmd_serve)

    args = parser.parse_args(argv)

    config = get_config()
    setup_logging(
        level=args.log_level or config.log_level,
        log_format=args.log_format or config.log_format
    )

    func = getattr(args, "func", cmd_console)
    return func(args)


if __name__ == "__main__":
    sys.exit(main())
