# atmodem

`atmodem` talks to AT-command modems (GSM, LTE and similar) over a byte
stream such as a serial line. A background reader thread writes queued
commands to the stream (each followed by `\r\n`), splits incoming data
into `\r\n`-terminated lines, and hands each line to the command that is
waiting for it. Unsolicited result codes, lines starting with `+CMT:`,
`+CMTI:`, `+CLIP:`, `+CREG:`, `+CPIN:` or `RING`, go to a callback of your
choice.

All timeouts are given in milliseconds.

## Installation

```
pip install atmodem
```

## Quick check from the command line

The package installs one command, `atmodem`. It opens a serial port (or
any URL that pyserial understands, such as `loop://`), sends one command
and prints the reply:

```
atmodem /dev/ttyUSB0
atmodem /dev/ttyUSB0 --command "AT+CGMI" --expect OK --timeout 2000 --baudrate 9600
atmodem --help
```

Options:

- `-b`, `--baudrate`: baud rate, default 115200
- `-c`, `--command`: command to send, default `AT`
- `-e`, `--expect`: text that marks a successful reply, default `OK`
- `-t`, `--timeout`: reply timeout in milliseconds, default 1000

The exit status is 0 when the expected text arrived, 1 when the command
failed or timed out, and 2 when the port could not be opened.

## Using the library

```python
from atmodem.handler import AsyncATHandler
from atmodem.streams import SerialStream

with SerialStream("/dev/ttyUSB0", 115200) as stream, AsyncATHandler() as handler:
    handler.begin(stream)

    # Send a command and wait until a line containing "OK" arrives.
    result = handler.send_command("AT", expected_response="OK", timeout=1000)
    if result:
        print(result.response)
    elif result.timed_out:
        print("no reply")

    # Build a command from parts.
    handler.send_command_parts("AT+QICSGP=1,1,\"", "internet", "\"", expected_response="OK")

    # Fire and forget.
    handler.send_command_async("AT+CSQ")

    # Several commands in a row, each expected to end in "OK".
    batch = handler.send_command_batch(["AT", "AT+CGMI", "AT+CGMM"])
    print(batch.success, batch.responses)
```

`send_command` returns a `CommandResult` with `success`, `response` and
`timed_out`; it is true when successful. Its `response` holds every line
received for that command up to and including the final one, with their
`\r\n` endings, e.g. `"SIMCOM\r\nOK\r\n"`. An empty `expected_response`
accepts whatever final line arrives. `send_command_batch` returns a
`BatchResult` with `success` (true only if every command succeeded) and
one response per command.

Leaving the `with` block stops the reader thread; you can also call
`handler.end()` yourself. `handler.is_running()` tells you whether the
handler is active. A handler is started once: calling `begin` a second
time, even after `end`, raises `HandlerError`. Sending a command before
`begin` or after `end` raises `HandlerNotRunning`, a subclass of
`HandlerError`; a full command queue also raises `HandlerError`.

### Unsolicited result codes

```python
from atmodem.handler import is_unsolicited_response

handler.set_unsolicited_callback(lambda line: print("URC:", line))

is_unsolicited_response("RING")   # True
is_unsolicited_response("OK")     # False
```

The callback receives the trimmed line and is called from the reader
thread. It can only be set after `begin`.

### Lines nobody asked for

Lines that arrive while no command is waiting are kept, trimmed, in a
response queue as `ATResponse` records with `command_id` 0:

```python
if handler.has_response():
    print(handler.get_response())   # None when the queue is empty

handler.queued_response_count()
handler.queued_command_count()
handler.flush_response_queue()

result = handler.wait_response("+CREG", timeout=2000)
```

`wait_response` takes lines from the queue until one contains the given
text or the time runs out; its `response` is the lines read, trimmed,
each followed by `\n`.

### Other transports

`SerialStream(port, baudrate=115200, timeout=0)` wraps a serial port via
`serial.serial_for_url` and can be closed with `close()` or used as a
context manager. Any other transport can be used by subclassing
`atmodem.streams.Stream` and implementing `available`, `read` (one byte
as an int, or -1), `write` and `flush`. This is also the easy way to drive
the handler from tests with a fake modem.

### Limits

The record types that travel through the queues, `ATCommand`,
`ATResponse` and `PendingCommand`, live in `atmodem.settings`, along with
the limits: at most 10 queued commands and 20 queued responses, commands
and expected responses cut to 511 characters, and incoming lines cut off
at 1023 characters (a longer line is dropped from the buffer).

## What it does not do

The package knows nothing about particular modems: it has no helpers for
SMS, calls, network registration or data connections, and does not parse
the content of replies or unsolicited codes. It only moves command and
response lines.