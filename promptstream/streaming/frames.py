"""
promptstream - SSE Frame Decoder

Turns a raw byte (or text) stream into discrete frames.

Both supported wire formats put one JSON payload on each ``data:`` line, so a
frame is produced per data line rather than per blank-line-delimited block.
The decoder always ends with exactly one terminal frame:

- ``DONE`` with ``sentinel=True`` when the ``[DONE]`` marker arrives
- ``DONE`` with ``sentinel=False`` when the source ends without it
- ``ERROR`` when reading or decoding the source fails
"""

import codecs
import re
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterable, AsyncIterator, List, Optional, Protocol, Union, runtime_checkable

SSE_DATA_FIELD = "data"
SSE_DONE_SIGNAL = "[DONE]"

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


@runtime_checkable
class ByteSource(Protocol):
    """
    A chunked upstream body: async-iterable bytes (or text) plus a release hook.

    ``aclose`` must be safe to call before the body is exhausted.
    """

    def __aiter__(self) -> AsyncIterator[Union[bytes, str]]:
        ...

    async def aclose(self) -> None:
        ...


class FrameKind(str, Enum):
    """Kinds of decoded frames."""
    DATA = "data"
    DONE = "done"
    ERROR = "error"


@dataclass
class RawFrame:
    """One decoded frame. ``data`` is the text after the ``data:`` marker."""
    kind: FrameKind
    data: str = ""
    sentinel: bool = False
    error: Optional[BaseException] = None

    @property
    def is_terminal(self) -> bool:
        return self.kind != FrameKind.DATA


class LineSplitter:
    """
    Incremental line splitter for ``\\n``, ``\\r\\n`` and ``\\r`` endings.

    A ``\\r`` at the very end of the buffer is held back until the next chunk
    shows whether a ``\\n`` follows it.
    """

    def __init__(self):
        self._buffer = ""

    def feed(self, text: str) -> List[str]:
        buffer = self._buffer + text
        lines = []
        pos = 0
        for match in _LINE_BREAK.finditer(buffer):
            if match.group() == "\r" and match.end() == len(buffer):
                break
            lines.append(buffer[pos:match.start()])
            pos = match.end()
        self._buffer = buffer[pos:]
        return lines

    def flush(self) -> List[str]:
        """Return the unterminated remainder, if any."""
        rest, self._buffer = self._buffer, ""
        if rest.endswith("\r"):
            rest = rest[:-1]
        return [rest] if rest else []


def parse_line(line: str) -> Optional[RawFrame]:
    """
    Parse one SSE line into a frame.

    Returns None for lines that carry no payload: blank lines, comments
    (``:`` prefix) and the ``event``, ``id`` and ``retry`` fields.
    """
    line = line.strip()
    if not line or line.startswith(":"):
        return None

    name, _, value = line.partition(":")
    if name != SSE_DATA_FIELD:
        return None

    if value.startswith(" "):
        value = value[1:]
    if not value:
        return None

    if value == SSE_DONE_SIGNAL:
        return RawFrame(kind=FrameKind.DONE, sentinel=True)
    return RawFrame(kind=FrameKind.DATA, data=value)


async def decode_frames(
    source: AsyncIterable[Union[bytes, str]],
) -> AsyncIterator[RawFrame]:
    """
    Decode frames from a chunked source.

    Chunks may split lines and multi-byte UTF-8 sequences anywhere. Nothing is
    yielded after the terminal frame. The source is not closed here; whoever
    opened it owns its release.
    """
    decoder = codecs.getincrementaldecoder("utf-8")()
    splitter = LineSplitter()

    try:
        async for chunk in source:
            text = decoder.decode(chunk) if isinstance(chunk, (bytes, bytearray)) else chunk
            for line in splitter.feed(text):
                frame = parse_line(line)
                if frame is None:
                    continue
                yield frame
                if frame.is_terminal:
                    return

        tail = splitter.feed(decoder.decode(b"", final=True)) + splitter.flush()
        for line in tail:
            frame = parse_line(line)
            if frame is None:
                continue
            yield frame
            if frame.is_terminal:
                return
    except Exception as e:
        yield RawFrame(kind=FrameKind.ERROR, error=e)
        return

    yield RawFrame(kind=FrameKind.DONE, sentinel=False)
