"""Byte streams the AT command handler talks through."""

from __future__ import annotations

from abc import ABC, abstractmethod

import serial


class Stream(ABC):
    """A bidirectional byte stream read one byte at a time."""

    @abstractmethod
    def available(self) -> int:
        """Return how many bytes can be read without waiting."""

    @abstractmethod
    def read(self) -> int:
        """Return the next byte as an int, or -1 when none is available."""

    @abstractmethod
    def write(self, data: bytes | str) -> int:
        """Write data and return the number of bytes written."""

    @abstractmethod
    def flush(self) -> None:
        """Wait until written data has been sent."""


class SerialStream(Stream):
    """A stream over a serial port or any URL that pyserial understands."""

    def __init__(self, port: str, baudrate: int = 115200, timeout: float | None = 0) -> None:
        self._serial = serial.serial_for_url(port, baudrate=baudrate, timeout=timeout)

    def available(self) -> int:
        return self._serial.in_waiting

    def read(self) -> int:
        if self._serial.in_waiting == 0:
            return -1
        data = self._serial.read(1)
        return data[0] if data else -1

    def write(self, data: bytes | str) -> int:
        if isinstance(data, str):
            data = data.encode("latin-1")
        written = self._serial.write(data)
        return len(data) if written is None else written

    def flush(self) -> None:
        self._serial.flush()

    def close(self) -> None:
        """Close the underlying port."""
        self._serial.close()

    def __enter__(self) -> SerialStream:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()