"""Command-line interface for the solenoid bridge."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional, Tuple

from . import DEFAULT_HTTP_HOST, DEFAULT_HTTP_PORT, DEFAULT_SERIAL_PORT, SERIAL_BAUD_RATE
from .command_queue import CommandQueue
from .exceptions import FrameParseError, SerialCommunicationError
from .serial_io import SerialConnectionManager, SerialIOLoop
from .service import BridgeService
from .state_store import TelemetryStore
from .telemetry import parse_frame
from .web import create_app

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"

logger = logging.getLogger("solenoid_bridge.cli")


def build_bridge(port: str, baud_rate: int = SERIAL_BAUD_RATE) -> Tuple[BridgeService, SerialIOLoop]:
    """Wire store, queue, serial loop and service together (loop not started)."""
    store = TelemetryStore()
    command_queue = CommandQueue()
    io_loop = SerialIOLoop(
        SerialConnectionManager(port=port, baud_rate=baud_rate),
        store,
        command_queue,
    )
    return BridgeService(store, command_queue), io_loop


def command_serve(args) -> int:
    """Run the serial loop and the HTTP server until interrupted."""
    logging.basicConfig(level=args.log_level, format=LOG_FORMAT, datefmt="%H:%M:%S")
    logger.info("Using serial port: %s", args.serial_port)

    try:
        service, io_loop = build_bridge(args.serial_port, args.baud_rate)
    except SerialCommunicationError as e:
        print(f"Error: {str(e)}", file=sys.stderr)
        return 1

    io_loop.start()
    app = create_app(service, io_loop)
    try:
        # The reloader would spawn a second process fighting over the port.
        app.run(host=args.host, port=args.http_port, threaded=True, use_reloader=False)
    finally:
        io_loop.stop(timeout=1.0)
    return 0


def command_serial_list(args) -> int:
    """List available serial ports."""
    ports = SerialConnectionManager.list_available_ports()
    if not ports:
        print("No serial ports found.")
    else:
        print("Available serial ports:")
        for p in ports:
            print(f"  {p}")
    return 0


def command_parse(args) -> int:
    """Decode one telemetry line and print it as JSON."""
    try:
        record = parse_frame(args.line.strip())
    except FrameParseError as e:
        print(f"Rejected: {e.reason}", file=sys.stderr)
        return 1
    print(json.dumps(record.to_dict(), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Solenoid Bridge - serial controller to HTTP bridge"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Serve
    serve_parser = subparsers.add_parser(
        "serve", help="Open the serial port and serve the HTTP control surface",
    )
    serve_parser.add_argument(
        "serial_port", nargs="?", default=DEFAULT_SERIAL_PORT, metavar="SERIAL_PORT",
        help=f"Serial port path (default: {DEFAULT_SERIAL_PORT}, "
             f"or SOLENOID_BRIDGE_SERIAL_PORT)",
    )
    serve_parser.add_argument(
        "--baud-rate", type=int, default=SERIAL_BAUD_RATE,
        help=f"Baud rate (default: {SERIAL_BAUD_RATE})",
    )
    serve_parser.add_argument(
        "--host", default=DEFAULT_HTTP_HOST,
        help=f"HTTP listen address (default: {DEFAULT_HTTP_HOST})",
    )
    serve_parser.add_argument(
        "--http-port", type=int, default=DEFAULT_HTTP_PORT,
        help=f"HTTP listen port (default: {DEFAULT_HTTP_PORT})",
    )
    serve_parser.add_argument(
        "--log-level", default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )
    serve_parser.set_defaults(func=command_serve)

    # Serial list
    serial_list_parser = subparsers.add_parser(
        "serial-list", help="List available serial ports",
    )
    serial_list_parser.set_defaults(func=command_serial_list)

    # Parse one frame
    parse_parser = subparsers.add_parser(
        "parse", help="Decode a telemetry line and print it as JSON",
    )
    parse_parser.add_argument("line", help="Telemetry line, quoted")
    parse_parser.set_defaults(func=command_parse)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
