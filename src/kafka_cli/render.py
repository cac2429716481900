"""
Terminal output for consumed messages.

Each message is printed as:

    -- 2025-01-15T10:00:00.000Z topic[partition]@offset
    key=value            (one line per property, sorted by key)
    <payload>

Payloads are printed as text, or parsed and pretty-printed as JSON when
JSON rendering is enabled. JSON is syntax-highlighted on a terminal.
Payloads that are not JSON are reported in red on the error stream and
not printed. A null value (tombstone) or header value prints as empty.
"""

import json
import sys
from typing import Any, Optional, TextIO

from rich.console import Console

from core.errors import PayloadDecodeError
from kafka_cli.schemas import Message, format_timestamp


def _display(text: Optional[str]) -> str:
    if text is None:
        return ""
    # Undo surrogateescape so undecodable header bytes print as replacement characters
    return text.encode("utf-8", "surrogateescape").decode("utf-8", "replace")


def _console(file: TextIO, color: Optional[bool]) -> Console:
    return Console(file=file, force_terminal=color, markup=False, emoji=False, highlight=False)


def render_json(payload: bytes) -> str:
    """
    Parse payload as JSON and return it pretty-printed.

    Raises:
        PayloadDecodeError: If the payload is not valid UTF-8 JSON
    """
    try:
        value: Any = json.loads(payload)
    except (UnicodeDecodeError, ValueError) as e:
        raise PayloadDecodeError("Payload is not JSON", payload=payload, cause=e) from e
    return json.dumps(value, indent=2, ensure_ascii=False)


class MessagePrinter:
    """
    Writes consumed messages to stdout and decode warnings to stderr.

    Args:
        json_output: Parse and pretty-print payloads as JSON
        out: Stream for message output (default: sys.stdout)
        err: Stream for warnings (default: sys.stderr)
        color: Force color on or off (default: per stream, when it is a terminal)
    """

    def __init__(
        self,
        json_output: bool = False,
        out: Optional[TextIO] = None,
        err: Optional[TextIO] = None,
        color: Optional[bool] = None,
    ):
        self.json_output = json_output
        self.out = out or sys.stdout
        self.err = err or sys.stderr
        self.console = _console(self.out, color)
        self.err_console = _console(self.err, color)

    @property
    def color(self) -> bool:
        """Whether warnings are colored."""
        return self.err_console.is_terminal

    def print_message(self, message: Message, timestamp_ms: int) -> bool:
        """
        Print one message.

        Returns:
            False if JSON rendering was requested and the payload was not JSON
        """
        payload = message.payload or b""

        self.out.write(
            f"-- {format_timestamp(timestamp_ms)} "
            f"{message.topic}[{message.partition}]@{message.offset}\n"
        )
        for key in sorted(message.properties):
            self.out.write(f"{_display(key)}={_display(message.properties[key])}\n")

        if not self.json_output:
            self.out.write(payload.decode("utf-8", "replace") + "\n")
            self.out.flush()
            return True

        try:
            rendered = render_json(payload)
        except PayloadDecodeError as e:
            self.out.flush()
            self.warn_not_json(e.payload)
            return False

        self.out.flush()
        self.console.print_json(rendered)
        return True

    def warn_not_json(self, payload: bytes) -> None:
        text = f"Value {payload.decode('utf-8', 'replace')!r} is not JSON"
        self.err_console.print(text, style="red", soft_wrap=True)


__all__ = [
    "MessagePrinter",
    "render_json",
]
