"""
Command-line interface for the trojanws relay.
"""

import argparse
import asyncio
import os
import sys
import logging

from trojanws import __version__
from trojanws.config import RelayConfig
from trojanws.server import RelayServer


def setup_logging(verbose: bool = False):
    """Configure logging based on verbosity level."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s \033[92m[%(levelname)s]\033[0m %(message)s',
        datefmt='%H:%M:%S'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trojanws",
        description="trojanws - password-authenticated tunnel relay over WebSocket",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"trojanws v{__version__}"
    )

    parser.add_argument(
        "--host",
        type=str,
        metavar="HOST",
        help="Listen address (or set TROJANWS_HOST env var, default: 0.0.0.0)"
    )

    parser.add_argument(
        "--port",
        type=int,
        metavar="PORT",
        help="Listen port (or set TROJANWS_PORT env var, default: 8080)"
    )

    parser.add_argument(
        "--password",
        type=str,
        metavar="SECRET",
        help="Shared password (or set PASSWORD env var)"
    )

    parser.add_argument(
        "--proxy-ips",
        type=str,
        metavar="ENDPOINTS",
        help="Comma-separated relay endpoints HOST[:PORT] used instead of the "
             "client's target (or set PROXY_IPS env var)"
    )

    parser.add_argument(
        "--cdn-hosts",
        type=str,
        metavar="HOSTS",
        help="Comma-separated front-end hostnames for subscription links (or set CDN_HOSTS env var)"
    )

    parser.add_argument(
        "--max-connections",
        type=int,
        metavar="N",
        help="Maximum concurrent sessions (or set TROJANWS_MAX_CONNECTIONS env var, default: 100)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)"
    )
    return parser


def apply_overrides(args: argparse.Namespace):
    """Write CLI flags into the environment so RelayConfig.from_env() sees them."""
    overrides = {
        "TROJANWS_HOST": args.host,
        "TROJANWS_PORT": args.port,
        "PASSWORD": args.password,
        "PROXY_IPS": args.proxy_ips,
        "CDN_HOSTS": args.cdn_hosts,
        "TROJANWS_MAX_CONNECTIONS": args.max_connections,
    }
    for name, value in overrides.items():
        if value is not None:
            os.environ[name] = str(value)


def main(argv=None):
    """Main entry point for the trojanws CLI."""
    args = build_parser().parse_args(argv)

    setup_logging(verbose=args.verbose)
    apply_overrides(args)

    print("\033[96m" + "=" * 60 + "\033[0m")
    print(f"\033[96m  trojanws v{__version__} - WebSocket Tunnel Relay\033[0m")
    print("\033[96m" + "=" * 60 + "\033[0m")
    print()

    try:
        config = RelayConfig.from_env()

        # Check for uvloop on non-Windows systems
        if os.name != 'nt':
            try:
                import uvloop
                uvloop.install()
                logging.info("Using uvloop for improved performance")
            except ImportError:
                logging.debug("uvloop not available, using default event loop")
        else:
            asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

        server = RelayServer(config)
        asyncio.run(server.start())
    except KeyboardInterrupt:
        print("\n\033[93m[SHUTDOWN] Received interrupt signal\033[0m")
        sys.exit(0)
    except Exception as e:
        logging.error(f"Fatal error: {e}", exc_info=args.verbose)
        sys.exit(1)


if __name__ == "__main__":
    main()
