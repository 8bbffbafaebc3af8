"""authgate entry point."""

import argparse
import logging

from authgate.config import get_settings
from authgate.logging_setup import setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    """Main entry point."""
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="authgate - OAuth2 authorization server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  authgate                           Serve on the configured host/port
  authgate --port 8080 --dev         Serve with auto-reload
""",
    )
    parser.add_argument("--host", default=settings.host, help=f"Bind address (default: {settings.host})")
    parser.add_argument("--port", type=int, default=settings.port, help=f"Port (default: {settings.port})")
    parser.add_argument("--dev", action="store_true", help="Enable auto-reload")
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level")
    args = parser.parse_args()

    setup_logging(level=args.log_level)

    from authgate.serve import run_server

    run_server(host=args.host, port=args.port, dev=args.dev)


if __name__ == "__main__":
    main()
