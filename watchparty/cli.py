"""Command-line interface for watchparty"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from pydantic import ValidationError

from watchparty import __version__
from watchparty.config import ConfigurationError, Settings
from watchparty.observability.logging_config import setup_logging

logger = logging.getLogger(__name__)


def load_settings(config_path: Optional[str]) -> Settings:
    """Settings from a YAML file when given, else environment/.env"""
    if config_path:
        return Settings.from_file(config_path)
    return Settings()


def serve_command(args):
    """Run the hub until interrupted"""
    from watchparty.service import PartyService

    settings = load_settings(args.config)
    if args.host:
        settings.host = args.host
    if args.port:
        settings.http_port = args.port
    if args.gateway_port:
        settings.gateway_port = args.gateway_port

    setup_logging(
        level="DEBUG" if settings.debug else settings.log_level,
        json_format=settings.log_json,
        log_file=settings.log_file,
    )

    try:
        service = PartyService(settings)
    except ConfigurationError as e:
        logger.error(f"ERROR: {e}")
        sys.exit(1)

    asyncio.run(service.run())


def check_config_command(args):
    """Validate configuration without starting anything"""
    settings = load_settings(args.config)
    try:
        settings.require_provisioning_credentials()
    except ConfigurationError as e:
        print(f"✗ {e}")
        sys.exit(1)
    print("✓ Configuration OK")
    print(f"  HTTP:    http://{settings.host}:{settings.http_port}")
    print(f"  Gateway: ws://{settings.host}:{settings.gateway_port}")
    print("  Clients connect their WebSocket to the gateway port (GATEWAY_PORT), not the HTTP port")
    print(f"  Provisioning: {settings.hyperbeam_api_url}")


def main(argv=None):
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        prog="watchparty",
        description="watchparty - shared remote session hub"
    )
    parser.add_argument("--config", help="Path to a YAML config file")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API and gateway (default)")
    serve_parser.add_argument("--host", help="Host to bind both servers to")
    serve_parser.add_argument("--port", type=int, help="HTTP port")
    serve_parser.add_argument("--gateway-port", type=int, help="WebSocket gateway port")

    subparsers.add_parser("check-config", help="Validate configuration and exit")
    subparsers.add_parser("version", help="Show version")

    args = parser.parse_args(argv)

    # Basic logging until settings are loaded
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        if args.command == "version":
            print(f"watchparty v{__version__}")
        elif args.command == "check-config":
            check_config_command(args)
        else:
            if args.command is None:
                args.host = args.port = args.gateway_port = None
            serve_command(args)
    except (ValidationError, OSError) as e:
        logger.error(f"ERROR: could not load configuration: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
