from __future__ import annotations

import codecs
import json
from typing import Any

DATA_PREFIX = "data: "


def format_sse_event(event: str, data: Any) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def parse_data_line(line: str) -> dict[str, Any] | None:
    """JSON payload of a ``data:`` line, or None for anything else or bad JSON."""
    if not line.startswith(DATA_PREFIX):
        return None
    try:
        payload = json.loads(line[len(DATA_PREFIX) :])
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


class SSELineBuffer:
    """Turns arbitrarily chunked stream bytes into complete text lines.

    The trailing segment after the last newline is held back until more bytes
    arrive. UTF-8 sequences split across chunks are decoded correctly.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, chunk: bytes) -> list[str]:
        self._pending += self._decoder.decode(chunk)
        *lines, self._pending = self._pending.split("\n")
        return lines

    def flush(self) -> list[str]:
        self._pending += self._decoder.decode(b"", final=True)
        remainder, self._pending = self._pending, ""
        return [remainder] if remainder else []
