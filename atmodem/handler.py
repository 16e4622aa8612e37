"""Background AT command handler: queues commands, writes them and collects replies."""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from .settings import (
    COMMAND_QUEUE_SIZE,
    DEFAULT_TIMEOUT_MS,
    QUEUE_TIMEOUT_MS,
    RESPONSE_BUFFER_SIZE,
    RESPONSE_QUEUE_SIZE,
    ATCommand,
    ATResponse,
    PendingCommand,
)
from .streams import Stream

log = logging.getLogger(__name__)

UnsolicitedCallback = Callable[[str], None]

_UNSOLICITED_PREFIXES = ("+CMT:", "+CMTI:", "+CLIP:", "+CREG:", "+CPIN:", "RING")
_LOCK_TIMEOUT = 0.1
_LINE_QUEUE_TIMEOUT = 0.01
_READER_PAUSE = 0.01
_STOP_GRACE = 1.0


def _millis() -> int:
    return int(time.monotonic() * 1000)


def is_unsolicited_response(line: str) -> bool:
    """Return whether a trimmed line is an unsolicited result code."""
    return line.startswith(_UNSOLICITED_PREFIXES)


class HandlerError(Exception):
    """Raised when the handler cannot do what was asked."""


class HandlerNotRunning(HandlerError):
    """Raised when the handler is used before begin() or after end()."""


@dataclass
class CommandResult:
    """Outcome of a synchronous command."""

    success: bool
    response: str = ""
    timed_out: bool = False

    def __bool__(self) -> bool:
        return self.success


@dataclass
class BatchResult:
    """Outcome of a batch of commands, one response per command."""

    success: bool
    responses: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.success


class AsyncATHandler:
    """Sends AT commands through a stream from a background reader thread.

    Timeouts are given in milliseconds.
    """

    def __init__(self) -> None:
        self._stream: Stream | None = None
        self._thread: threading.Thread | None = None
        self._lock = threading.RLock()
        self._commands: queue.Queue[ATCommand] | None = None
        self._responses: queue.Queue[ATResponse] | None = None
        self._next_id = 1
        self._buffer = bytearray()
        self._callback: UnsolicitedCallback | None = None
        self._running = False
        self._pending = PendingCommand()

    def __enter__(self) -> AsyncATHandler:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.end()

    # -- lifecycle ---------------------------------------------------------

    def begin(self, stream: Stream) -> None:
        """Start the reader thread on ``stream``.

        A handler can be started once; starting it again raises HandlerError.
        """
        if self._thread or self._running or self._commands or self._responses:
            raise HandlerError("handler already initialized")

        self._commands = queue.Queue(maxsize=COMMAND_QUEUE_SIZE)
        self._responses = queue.Queue(maxsize=RESPONSE_QUEUE_SIZE)
        self._stream = stream
        self._running = True
        self._next_id = 1
        self._buffer.clear()
        self.flush_response_queue()
        self._pending = PendingCommand()

        thread = threading.Thread(target=self._reader_loop, name="AT_Reader", daemon=True)
        try:
            thread.start()
        except RuntimeError as exc:
            self._running = False
            self._stream = None
            self._commands = None
            self._responses = None
            raise HandlerError("failed to start reader thread") from exc
        self._thread = thread
        log.debug("Handler started, reader thread created.")

    def end(self) -> None:
        """Stop the reader thread and drop collected responses."""
        if not self._running and self._thread is None:
            return
        self._running = False
        if self._thread is not None:
            self._thread.join(_STOP_GRACE)
            self._thread = None
        self._stream = None
        if self._responses is not None:
            self.flush_response_queue()
        self._pending = PendingCommand()
        log.debug("Handler stopped.")

    def is_running(self) -> bool:
        """Return whether the reader thread is running."""
        return self._running

    # -- sending -----------------------------------------------------------

    def _require_running(self) -> None:
        if self._stream is None or not self._running or self._commands is None:
            raise HandlerNotRunning("handler not initialized or not running")

    def _take_id(self) -> int:
        with self._lock:
            command_id = self._next_id
            self._next_id += 1
        return command_id

    def _enqueue(self, cmd: ATCommand) -> None:
        assert self._commands is not None
        try:
            self._commands.put(cmd, timeout=QUEUE_TIMEOUT_MS / 1000)
        except queue.Full:
            raise HandlerError(f"command queue full, cannot send command {cmd.id}") from None

    def send_command_async(self, command: str) -> None:
        """Queue a command to be written without waiting for any reply."""
        self._require_running()
        self._enqueue(ATCommand(id=self._take_id(), command=command))

    def send_command(
        self,
        command: str,
        expected_response: str = "OK",
        timeout: int = DEFAULT_TIMEOUT_MS,
    ) -> CommandResult:
        """Send a command and wait for a line containing ``expected_response``."""
        self._require_running()
        if self._responses is None:
            raise HandlerNotRunning("handler not initialized or not running")

        event = threading.Event()
        cmd = ATCommand(
            id=self._take_id(),
            command=command,
            expected_response=expected_response,
            timeout=timeout,
            wait_for_response=True,
            response_event=event,
        )
        log.debug("Queuing (sync) cmd ID: %d, Cmd: %r", cmd.id, cmd.command)
        self._enqueue(cmd)

        if not event.wait(timeout / 1000):
            log.error("Timeout waiting for response to cmd ID: %d", cmd.id)
            return CommandResult(success=False, response="", timed_out=True)

        collected = self._collect_responses(cmd.id)
        success = not cmd.expected_response or cmd.expected_response in collected
        if not success:
            log.warning(
                "Expected response %r not found in %r for cmd ID: %d",
                cmd.expected_response,
                collected,
                cmd.id,
            )
        return CommandResult(success=success, response=collected)

    def _collect_responses(self, command_id: int) -> str:
        assert self._responses is not None
        parts: list[str] = []
        acquired = self._lock.acquire(timeout=_LOCK_TIMEOUT)
        try:
            for _ in range(self._responses.qsize() + RESPONSE_QUEUE_SIZE):
                try:
                    resp = self._responses.get_nowait()
                except queue.Empty:
                    break
                if resp.command_id == command_id:
                    parts.append(resp.response)
                else:
                    try:
                        self._responses.put_nowait(resp)
                    except queue.Full:
                        log.warning("Could not re-queue response for ID: %d", resp.command_id)
        finally:
            if acquired:
                self._lock.release()
        return "".join(parts)

    def send_command_parts(
        self,
        *args: object,
        expected_response: str = "OK",
        timeout: int = DEFAULT_TIMEOUT_MS,
    ) -> CommandResult:
        """Join the parts into one command and send it synchronously."""
        return self.send_command("".join(str(part) for part in args), expected_response, timeout)

    def send_command_batch(self, commands, timeout: int = DEFAULT_TIMEOUT_MS) -> BatchResult:
        """Send each command in turn, expecting "OK" from every one."""
        responses: list[str] = []
        all_success = True
        for command in commands:
            result = self.send_command(command, "OK", timeout)
            responses.append(result.response)
            all_success = all_success and result.success
        return BatchResult(success=all_success, responses=responses)

    def wait_response(
        self, expected_response: str, timeout: int = DEFAULT_TIMEOUT_MS
    ) -> CommandResult:
        """Read queued lines until one contains ``expected_response`` or time runs out."""
        if self._responses is None:
            raise HandlerNotRunning("handler not initialized")
        start = _millis()
        collected: list[str] = []
        while _millis() - start < timeout:
            try:
                resp = self._responses.get(timeout=0.1)
            except queue.Empty:
                continue
            line = resp.response.strip()
            collected.append(line + "\n")
            if expected_response in line:
                return CommandResult(success=True, response="".join(collected))
        return CommandResult(success=False, response="".join(collected), timed_out=True)

    # -- responses ---------------------------------------------------------

    def set_unsolicited_callback(self, callback: UnsolicitedCallback | None) -> None:
        """Set the function called with each unsolicited result line."""
        if self._commands is None:
            raise HandlerNotRunning("handler not initialized")
        with self._lock:
            self._callback = callback

    def has_response(self) -> bool:
        """Return whether a response line is waiting in the queue."""
        return self.queued_response_count() > 0

    def get_response(self) -> ATResponse | None:
        """Take the oldest queued response, or return None when there is none."""
        if self._responses is None:
            return None
        if not self._lock.acquire(timeout=_LOCK_TIMEOUT):
            log.warning("Failed to acquire lock.")
            return None
        try:
            return self._responses.get_nowait()
        except queue.Empty:
            return None
        finally:
            self._lock.release()

    def flush_response_queue(self) -> None:
        """Drop every queued response."""
        if self._responses is None:
            return
        if not self._lock.acquire(timeout=_LOCK_TIMEOUT):
            log.warning("Failed to acquire lock.")
            return
        try:
            while True:
                try:
                    self._responses.get_nowait()
                except queue.Empty:
                    break
        finally:
            self._lock.release()

    def _count(self, q: queue.Queue | None) -> int:
        if q is None:
            return 0
        if not self._lock.acquire(timeout=_LOCK_TIMEOUT):
            log.warning("Failed to acquire lock.")
            return 0
        try:
            return q.qsize()
        finally:
            self._lock.release()

    def queued_command_count(self) -> int:
        """Return how many commands are still waiting to be written."""
        return self._count(self._commands)

    def queued_response_count(self) -> int:
        """Return how many response lines are waiting in the queue."""
        return self._count(self._responses)

    # -- reader thread -----------------------------------------------------

    def _reader_loop(self) -> None:
        while self._running:
            stream = self._stream
            if stream is None:
                break
            if self._lock.acquire(timeout=_LOCK_TIMEOUT):
                try:
                    self._write_next_command(stream)
                finally:
                    self._lock.release()
            self._process_incoming_data(stream)
            time.sleep(_READER_PAUSE)
        log.debug("Reader thread exiting.")

    def _write_next_command(self, stream: Stream) -> None:
        assert self._commands is not None
        try:
            cmd = self._commands.get_nowait()
        except queue.Empty:
            return
        stream.write(cmd.command + "\r\n")
        stream.flush()
        if cmd.wait_for_response:
            self._pending.id = cmd.id
            self._pending.response_event = cmd.response_event
            self._pending.expected_response = cmd.expected_response
            self._pending.active = True

    def _process_incoming_data(self, stream: Stream) -> None:
        if not self._lock.acquire(timeout=_LOCK_TIMEOUT):
            return
        try:
            while stream.available():
                byte = stream.read()
                if byte < 0:
                    break
                if len(self._buffer) < RESPONSE_BUFFER_SIZE - 1:
                    self._buffer.append(byte)
                else:
                    log.warning("Response buffer overflow. Clearing.")
                    self._buffer.clear()
                    continue
                if self._buffer.endswith(b"\r\n"):
                    line = self._buffer.decode("latin-1")
                    self._buffer.clear()
                    self._handle_response(line)
                    # Stop after the final line so the next command's replies
                    # are not consumed before that command is written.
                    if not self._pending.active:
                        break
        finally:
            self._lock.release()

    def _enqueue_response(self, resp: ATResponse) -> None:
        assert self._responses is not None
        try:
            self._responses.put(resp, timeout=_LINE_QUEUE_TIMEOUT)
        except queue.Full:
            log.error("Failed to queue response for cmd ID: %d", resp.command_id)

    def _handle_response(self, raw: str) -> None:
        line = raw.strip()
        if not line:
            return

        if is_unsolicited_response(line):
            if self._callback is not None:
                self._callback(line)
            return

        pending = self._pending
        if pending.active:
            final = bool(pending.expected_response) and pending.expected_response in line
            self._enqueue_response(
                ATResponse(command_id=pending.id, response=raw, success=final, timestamp=_millis())
            )
            if final:
                if pending.response_event is not None:
                    pending.response_event.set()
                else:
                    log.warning("No event to signal for pending command ID: %d", pending.id)
                pending.active = False
                pending.response_event = None
                pending.expected_response = ""
        else:
            log.debug("Unmatched response (no pending sync command): %r", line)
            self._enqueue_response(
                ATResponse(command_id=0, response=line, success=False, timestamp=_millis())
            )