# Newline-delimited JSON framing between the gateway and constrained clients
"""json: serialize/deserialize, asyncio: StreamWriter for the client socket"""
import json, asyncio
from typing import List

DELIMITER = b"\n"


class LineFramer:
    """Splits a byte stream into text lines on DELIMITER.

    Chunks may arrive in any size: a line can be spread over several chunks
    and one chunk can hold several lines. The unterminated tail is kept
    until the next feed().
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    @property
    def pending(self) -> int:
        return len(self._buffer)

    def feed(self, chunk: bytes) -> List[str]:
        self._buffer.extend(chunk)
        lines = []
        start = 0
        while True:
            index = self._buffer.find(DELIMITER, start)
            if index == -1:
                break
            # payload interpretation happens downstream, bad bytes just get replaced
            lines.append(self._buffer[start:index].decode("utf-8", errors="replace"))
            start = index + 1
        if start:
            del self._buffer[:start]
        return lines


def encode_line(obj) -> bytes:
    # JSON escapes control characters inside strings, so the delimiter never leaks
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False).encode() + DELIMITER


def as_single_line(text: str) -> str:
    """Return text unchanged unless it carries raw newlines (pretty-printed JSON)."""
    if "\n" not in text and "\r" not in text:
        return text
    return json.dumps(json.loads(text), separators=(",", ":"), ensure_ascii=False)


async def _write(writer: asyncio.StreamWriter, data: bytes):
    if writer.is_closing():
        return
    writer.write(data)
    try:
        await writer.drain()
    except ConnectionError:
        # peer went away; the session read loop notices on its own
        pass


async def send_msg(writer: asyncio.StreamWriter, obj: dict):
    await _write(writer, encode_line(obj))


async def send_line(writer: asyncio.StreamWriter, text: str):
    await _write(writer, as_single_line(text).encode() + DELIMITER)
