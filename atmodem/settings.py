"""Limits, defaults and record types shared by the AT command handler."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

COMMAND_QUEUE_SIZE = 10
"""Maximum number of commands waiting to be written to the stream."""

RESPONSE_QUEUE_SIZE = 20
"""Maximum number of response lines held for collection."""

DEFAULT_TIMEOUT_MS = 5000
"""Default time a synchronous command waits for its final line, in milliseconds."""

QUEUE_TIMEOUT_MS = 100
"""Time spent waiting for room in a queue, in milliseconds."""

RESPONSE_BUFFER_SIZE = 1024
"""Size of the line assembly buffer; a stored line keeps at most one less character."""

COMMAND_MAX_LENGTH = 512
"""Size of a command slot; a command keeps at most one less character."""

EXPECTED_RESPONSE_MAX_LENGTH = 512
"""Size of an expected-response slot; the text keeps at most one less character."""


def _clip(text: str, size: int) -> str:
    """Cut text to what fits a slot of ``size`` that keeps room for a terminator."""
    return text[: size - 1]


@dataclass
class ATCommand:
    """A command waiting in the command queue."""

    id: int
    command: str
    expected_response: str = ""
    timeout: int = DEFAULT_TIMEOUT_MS
    wait_for_response: bool = False
    response_event: threading.Event | None = None

    def __post_init__(self) -> None:
        self.command = _clip(self.command, COMMAND_MAX_LENGTH)
        self.expected_response = _clip(self.expected_response, EXPECTED_RESPONSE_MAX_LENGTH)


@dataclass
class ATResponse:
    """A line received from the modem, tagged with the command it belongs to."""

    command_id: int = 0
    response: str = ""
    success: bool = False
    timestamp: int = 0

    def __post_init__(self) -> None:
        self.response = _clip(self.response, RESPONSE_BUFFER_SIZE)


@dataclass
class PendingCommand:
    """The synchronous command currently awaiting its final response line."""

    id: int = 0
    response_event: threading.Event | None = None
    expected_response: str = ""
    active: bool = False

    def __post_init__(self) -> None:
        self.expected_response = _clip(self.expected_response, EXPECTED_RESPONSE_MAX_LENGTH)

    def reset(self) -> None:
        """Forget the pending command."""
        self.id = 0
        self.response_event = None
        self.expected_response = ""
        self.active = False