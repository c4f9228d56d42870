"""
platestream CLI - Main entry point.

Command-line access to the streaming service's REST endpoints: health,
connectivity, server-side sessions and result downloads.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

import yaml

from platestream_api import RESULT_FORMATS, StreamingApiClient, StreamingApiError
from platestream_ws.config import ClientConfig
from platestream_ws.logging import StructuredLogger


def load_client_config(config_path: Optional[str]) -> ClientConfig:
    """
    Load the client YAML, or defaults when no path is given.

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If YAML or a value is invalid
    """
    if config_path is None:
        return ClientConfig()

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        return ClientConfig.from_yaml(path)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {config_path}: {e}")


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="platestream",
        description="platestream CLI - Query the plate streaming service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Service health and connectivity
  platestream health
  platestream test-connection

  # Server-side sessions
  platestream sessions
  platestream session-info session_1718000000000_k3j9x0abc
  platestream close-session session_1718000000000_k3j9x0abc

  # Download results of a finished session
  platestream download session_1718000000000_k3j9x0abc --format csv -o results/

  # Use a config file / override the service URL
  platestream --config config/client.yaml sessions
  platestream --api-url http://alpr.local:8000 health
"""
    )

    # Global arguments
    parser.add_argument(
        "--config",
        help="Client config YAML (default: built-in defaults)"
    )
    parser.add_argument(
        "--api-url",
        help="Service base URL, overrides the config (e.g. http://localhost:8000)"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="HTTP timeout in seconds, overrides the config"
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level for request logs (default: WARNING)"
    )

    # Subcommands
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    subparsers.add_parser('health', help='Streaming service health')
    subparsers.add_parser('test-connection', help='Connectivity check')
    subparsers.add_parser('sessions', help='List active sessions')

    session_info = subparsers.add_parser('session-info', help='Show one session')
    session_info.add_argument('session_id', help='Session ID')

    close_session = subparsers.add_parser('close-session', help='Close a session on the server')
    close_session.add_argument('session_id', help='Session ID')

    download = subparsers.add_parser('download', help='Download session results')
    download.add_argument('session_id', help='Session ID')
    download.add_argument(
        '--format',
        dest='fmt',
        default='json',
        choices=RESULT_FORMATS,
        help='Result format (default: json)'
    )
    download.add_argument(
        '-o', '--output-dir',
        default='.',
        help='Destination directory (default: current directory)'
    )

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point. Returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = load_client_config(args.config)
    except (FileNotFoundError, ValueError, TypeError) as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1

    logger = StructuredLogger(component="cli", level=getattr(logging, args.log_level))
    api = StreamingApiClient(
        base_url=args.api_url or config.api_base_url,
        timeout=args.timeout or config.http_timeout,
        logger=logger,
    )

    # Execute command
    try:
        with api:
            if args.command == 'health':
                print_json(api.get_health())

            elif args.command == 'test-connection':
                print_json(api.test_connection())

            elif args.command == 'sessions':
                print_json(api.get_active_sessions())

            elif args.command == 'session-info':
                print_json(api.get_session_info(args.session_id))

            elif args.command == 'close-session':
                api.disconnect_session(args.session_id)
                print(f"✅ Session {args.session_id} closed")

            elif args.command == 'download':
                path = api.download_results(args.session_id, fmt=args.fmt, dest_dir=args.output_dir)
                print(f"✅ Results saved to {path}")

    except StreamingApiError as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
