"""Main entry point for the messer CLI."""

import argparse
import asyncio
import sys
from typing import List, Optional

from ..app import MesserApp
from ..config import DEFAULT_CONFIG_PATH, ConfigError, load_config, setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="messer",
        description="Messer - chat from the command line",
    )
    parser.add_argument(
        "-c", "--command",
        help='Run a single command and exit (e.g. -c \'message "Bob" hi\')',
    )
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help=f"Config file (default: {DEFAULT_CONFIG_PATH})")
    parser.add_argument("--debug", action="store_true", help="Verbose logging and tracebacks")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for messer."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    setup_logging(config, debug=args.debug)
    app = MesserApp(config, debug=args.debug)

    try:
        if args.command is not None:
            return asyncio.run(app.start_single(args.command))
        return asyncio.run(app.start())
    except KeyboardInterrupt:
        return 130


def run():
    """Entry point for console script."""
    sys.exit(main())


if __name__ == "__main__":
    run()
