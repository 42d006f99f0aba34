"""dida365-mcp entry point.

Runs the MCP server over stdio. stdout carries the protocol, so the banner
and all logging go to stderr.
"""

import argparse
import asyncio
import logging
import sys

from pydantic import ValidationError

from dida365_mcp import __version__
from dida365_mcp.config import DEVELOPER_PORTAL, Settings, describe_config, get_settings
from dida365_mcp.errors import ConfigError
from dida365_mcp.logging_setup import setup_logging

logger = logging.getLogger(__name__)

SETUP_HELP = f"""
Setup:
  1. Register an application at {DEVELOPER_PORTAL}
  2. Set the redirect URI to http://localhost:8521/callback
  3. Export the credentials:
       DIDA365_CLIENT_ID=your_client_id
       DIDA365_CLIENT_SECRET=your_client_secret
       DIDA365_REGION=china   # or "international" for TickTick
"""


def _load_settings() -> Settings:
    try:
        return get_settings()
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="dida365-mcp",
        description="MCP server for Dida365 / TickTick task management",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dida365-mcp                  Serve all tools over stdio
  dida365-mcp --readonly       Hide every tool that modifies data
  dida365-mcp --log-level DEBUG
""",
    )
    parser.add_argument(
        "--readonly",
        "-r",
        action="store_true",
        help="Read-only mode: only query tools are exposed",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: DIDA365_LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--version",
        "-v",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    args = parser.parse_args()

    setup_logging(level=args.log_level or "INFO")

    try:
        settings = _load_settings()
        if args.log_level is None:
            setup_logging(level=settings.log_level)
        config = settings.oauth_config()
    except ConfigError as e:
        logger.error("%s", e)
        print(SETUP_HELP, file=sys.stderr)
        raise SystemExit(1) from e

    read_only = args.readonly or settings.read_only

    logger.info("Dida365 MCP server v%s starting", __version__)
    describe_config(config, read_only=read_only)

    from dida365_mcp.server import serve

    try:
        asyncio.run(serve(config, read_only=read_only))
    except KeyboardInterrupt:
        logger.info("Dida365 MCP server stopped.")


if __name__ == "__main__":
    main()
