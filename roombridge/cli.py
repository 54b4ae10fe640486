"""RoomBridge CLI entry point.

Usage:
    roombridge run [--config bridge.yaml] [--env-file .env]
    roombridge init [--output bridge.yaml]
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from loguru import logger


def cmd_run(args: argparse.Namespace) -> None:
    """Run the RoomBridge server."""
    from roombridge.config import BridgeConfig, load_config

    if args.config:
        if not Path(args.config).exists():
            logger.error(f"Config file not found: {args.config}")
            sys.exit(1)
        if args.env_file:
            from dotenv import load_dotenv

            load_dotenv(args.env_file)
        config = load_config(args.config)
    else:
        config = BridgeConfig.from_env(env_file=args.env_file)

    # Configure logging
    logger.remove()
    logger.add(sys.stderr, level=config.logging.level)

    logger.info(f"RoomBridge starting with config: {args.config or 'environment'}")
    logger.info(f"Listening on: {config.server.listen_host}:{config.server.listen_port}")
    logger.info(f"Room service: {config.room.url or '<unset>'}")

    from roombridge.server import run_server

    run_server(config)


def cmd_init(args: argparse.Namespace) -> None:
    """Generate a starter configuration file."""
    output = Path(args.output)

    if output.exists() and not args.force:
        logger.error(f"File already exists: {output}. Use --force to overwrite.")
        sys.exit(1)

    from roombridge.config import DEFAULT_CONFIG_YAML

    output.write_text(DEFAULT_CONFIG_YAML)
    print(f"Configuration written to: {output}")
    print(f"\nEdit the file and run: roombridge run --config {output}")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="roombridge",
        description="RoomBridge - relay Twilio Media Streams into real-time rooms",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # `roombridge run`
    run_parser = subparsers.add_parser("run", help="Run the RoomBridge server")
    run_parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to a YAML config file (default: read the environment)",
    )
    run_parser.add_argument(
        "--env-file", "-e",
        default=None,
        help="Optional .env file loaded before reading the environment",
    )

    # `roombridge init`
    init_parser = subparsers.add_parser("init", help="Generate a starter config file")
    init_parser.add_argument(
        "--output", "-o",
        default="bridge.yaml",
        help="Output file path (default: bridge.yaml)",
    )
    init_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Overwrite existing file",
    )

    args = parser.parse_args(argv)

    if args.command == "run":
        cmd_run(args)
    elif args.command == "init":
        cmd_init(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
