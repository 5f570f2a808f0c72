#!/usr/bin/env python3
"""
Media Remote CLI - Command line interface for starting/stopping the server.
"""

import argparse
import asyncio
import json
import os
import signal
import sys
from pathlib import Path
from typing import Any, Optional

import aiohttp

# PID file location
PID_FILE = Path("/tmp/media-remote.pid")


def get_pid() -> int | None:
    """Get PID from file if exists."""
    if PID_FILE.exists():
        try:
            pid = int(PID_FILE.read_text().strip())
            # Check if process is running
            os.kill(pid, 0)
            return pid
        except (ValueError, OSError):
            PID_FILE.unlink(missing_ok=True)
    return None


def write_pid() -> None:
    """Write current PID to file."""
    PID_FILE.write_text(str(os.getpid()))


def remove_pid() -> None:
    """Remove PID file."""
    PID_FILE.unlink(missing_ok=True)


def _load_config(args):
    from .config import reload_config

    config = reload_config(Path(args.config) if getattr(args, "config", None) else None)
    config.override("server", "port", getattr(args, "port", None))
    config.override("server", "http_port", getattr(args, "http_port", None))
    config.override("server", "host", getattr(args, "host", None))
    if getattr(args, "verbose", False):
        config.override("logging", "verbose", True)
    return config


async def _control_request(config, method: str, path: str, **kwargs) -> Any:
    """Call the running server's HTTP control app."""
    url = f"http://127.0.0.1:{config.http_port}{path}"
    timeout = aiohttp.ClientTimeout(total=5)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        async with session.request(method, url, **kwargs) as resp:
            return await resp.json()


def control_request(config, method: str, path: str, **kwargs) -> Optional[Any]:
    """Blocking wrapper; returns None when the control app is unreachable."""
    if not config.http_port:
        return None
    try:
        return asyncio.run(_control_request(config, method, path, **kwargs))
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError):
        return None


def cmd_start(args) -> int:
    """Start the server."""
    # Check if already running
    existing_pid = get_pid()
    if existing_pid:
        print(f"ℹ️  Media Remote is already running (PID: {existing_pid})")
        print(f"   Run 'media-remote stop' first")
        return 0

    # Import here to avoid loading when not needed
    from .log import setup_logging
    from .server import run_server

    config = _load_config(args)
    setup_logging(config.verbose, config.log_file)

    write_pid()

    try:
        run_server(config)
    except OSError as e:
        print(f"❌ Failed to start: {e}")
        return 1
    finally:
        remove_pid()

    return 0


def cmd_stop(args) -> int:
    """Stop the server."""
    pid = get_pid()

    if not pid:
        print("ℹ️  Media Remote is not running")
        return 0

    try:
        os.kill(pid, signal.SIGTERM)
        print(f"✅ Stopped Media Remote (PID: {pid})")
        remove_pid()
        return 0
    except OSError as e:
        print(f"❌ Failed to stop: {e}")
        remove_pid()
        return 1


def cmd_status(args) -> int:
    """Check server status."""
    pid = get_pid()

    if not pid:
        print("❌ Media Remote is not running")
        return 1

    print(f"✅ Media Remote is running (PID: {pid})")

    config = _load_config(args)
    status = control_request(config, "GET", "/status")
    if status:
        host = status.get("local_ip") or "unknown"
        print(f"   WebSocket: ws://{host}:{status['port']}")
        print(f"   Clients:   {status['clients']}")

    return 0


def cmd_broadcast(args) -> int:
    """Send a message to every connected client."""
    config = _load_config(args)
    result = control_request(config, "POST", "/broadcast", json={"message": args.message})

    if result is None:
        print("❌ Media Remote is not running (control app unreachable)")
        return 1
    if result.get("status") == "error":
        print(f"❌ {result.get('message')}")
        return 1

    print(f"✅ {result.get('message')}")
    return 0


def cmd_ip(args) -> int:
    """Show local IP address."""
    from .config import get_local_ip

    config = _load_config(args)
    ip = get_local_ip()
    print(f"📍 Local IP: {ip}")
    print(f"   WebSocket: ws://{ip}:{config.port}")
    return 0


def cmd_info(args) -> int:
    """Show connection info for the companion web app."""
    from .controller import ServerController

    config = _load_config(args)
    info = control_request(config, "GET", "/connection-info")
    if info is None:
        info = ServerController(config).connection_info()

    print(json.dumps(info, indent=2))
    return 0


def cmd_config(args) -> int:
    """Show current configuration."""
    from .config import get_config_paths

    print("📝 Configuration:")
    print()

    # Show config file locations
    print("   Config file search paths:")
    for path in get_config_paths():
        exists = "✓" if path.exists() else " "
        print(f"   [{exists}] {path}")
    print()

    config = _load_config(args)
    print("   Current settings:")
    print(f"   - Host: {config.host}")
    print(f"   - Port: {config.port}")
    print(f"   - HTTP control port: {config.http_port or '(disabled)'}")
    print(f"   - Dispatch timeout: {config.dispatch_timeout}s")
    print(f"   - Text input limit: {config.text_max_length} characters")
    print(f"   - Text input spacing: {config.text_min_interval}s")
    print(f"   - Native workers: {config.workers}")
    print(f"   - Display output: {config.display_output}")

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="media-remote",
        description="Control media, volume and input on this computer from a phone",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  media-remote start                 # Start with default settings
  media-remote start --port 9090     # Start on different port
  media-remote broadcast "hello"     # Push a message to all clients
  media-remote stop                  # Stop the server
  media-remote status                # Check if running
  media-remote ip                    # Show local IP address
        """
    )
    parser.add_argument("--config", "-c", type=str, help="Path to config YAML")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Start command
    start_parser = subparsers.add_parser("start", help="Start the server")
    start_parser.add_argument("--port", "-p", type=int, help="WebSocket port (default: 8080)")
    start_parser.add_argument("--http-port", type=int, help="HTTP control port, 0 disables (default: 8081)")
    start_parser.add_argument("--host", type=str, help="Bind address, or 'auto' (default: 0.0.0.0)")
    start_parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    start_parser.set_defaults(func=cmd_start)

    # Stop command
    stop_parser = subparsers.add_parser("stop", help="Stop the server")
    stop_parser.set_defaults(func=cmd_stop)

    # Status command
    status_parser = subparsers.add_parser("status", help="Check server status")
    status_parser.set_defaults(func=cmd_status)

    # Broadcast command
    broadcast_parser = subparsers.add_parser("broadcast", help="Send text to all clients")
    broadcast_parser.add_argument("message", type=str, help="Text to send")
    broadcast_parser.set_defaults(func=cmd_broadcast)

    # IP command
    ip_parser = subparsers.add_parser("ip", help="Show local IP address")
    ip_parser.set_defaults(func=cmd_ip)

    # Info command
    info_parser = subparsers.add_parser("info", help="Show companion app connection info")
    info_parser.set_defaults(func=cmd_info)

    # Config command
    config_parser = subparsers.add_parser("config", help="Show configuration")
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv=None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
