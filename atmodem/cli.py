"""Command line entry point: open a port, send one AT command and print the reply."""

from __future__ import annotations

import argparse
import sys

import serial

from .handler import AsyncATHandler, HandlerError
from .streams import SerialStream

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_PORT_ERROR = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="atmodem",
        description="Send an AT command to a modem and print its response.",
    )
    parser.add_argument("port", help="serial port name or pyserial URL, e.g. /dev/ttyUSB0")
    parser.add_argument("-b", "--baudrate", type=int, default=115200, help="baud rate")
    parser.add_argument("-c", "--command", default="AT", help="command to send")
    parser.add_argument(
        "-e", "--expect", default="OK", help="text that marks a successful reply"
    )
    parser.add_argument(
        "-t", "--timeout", type=int, default=1000, help="reply timeout in milliseconds"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the command line tool and return its exit status."""
    args = _build_parser().parse_args(argv)

    try:
        stream = SerialStream(args.port, baudrate=args.baudrate)
    except (serial.SerialException, ValueError) as exc:
        print(f"Cannot open {args.port}: {exc}", file=sys.stderr)
        return EXIT_PORT_ERROR

    print("Initializing AsyncATHandler...")
    with stream, AsyncATHandler() as handler:
        handler.begin(stream)
        print(f"Sending '{args.command}' command...")
        try:
            result = handler.send_command(args.command, args.expect, args.timeout)
        except HandlerError as exc:
            print(f"{args.command} command failed: {exc}")
            return EXIT_FAILED

        if result:
            print(f"Response: {result.response.rstrip()}")
            return EXIT_OK
        print(f"{args.command} command failed or timed out.")
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())