"""Reassemble raw serial chunks into complete text lines."""

from __future__ import annotations

import codecs
import logging
from typing import Callable, Iterable, Iterator, List, Optional

logger = logging.getLogger(__name__)

LineSink = Callable[[str], None]


class LineFramer:
    """Split an arbitrary chunked byte stream on line feeds.

    Any text after the last line feed of a chunk is carried over and prefixed
    to the next chunk, so lines split across reads are emitted intact. Bytes
    that are not valid in ``encoding`` decode to U+FFFD instead of raising.
    """

    def __init__(self, sink: Optional[LineSink] = None, encoding: str = "utf-8") -> None:
        self._sink = sink
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""

    @property
    def pending(self) -> str:
        return self._pending

    def feed(self, chunk: bytes) -> List[str]:
        """Consume one chunk and return the lines it completed."""
        if not chunk:
            return []
        text = self._decoder.decode(chunk).replace("\r", "")
        parts = (self._pending + text).split("\n")
        self._pending = parts.pop()
        return self._emit(parts)

    def finalize(self) -> List[str]:
        """Flush the unterminated tail as a last line, if it has content."""
        tail = self._pending + self._decoder.decode(b"", final=True).replace("\r", "")
        self._pending = ""
        self._decoder.reset()
        return self._emit([tail])

    def _emit(self, parts: Iterable[str]) -> List[str]:
        lines: List[str] = []
        for part in parts:
            line = part.strip()
            if not line:
                continue
            lines.append(line)
            if self._sink is not None:
                self._sink(line)
        return lines


def frame_lines(chunks: Iterable[bytes], encoding: str = "utf-8") -> Iterator[str]:
    """Lazily yield complete lines from an iterable of byte chunks."""
    framer = LineFramer(encoding=encoding)
    for chunk in chunks:
        yield from framer.feed(chunk)
    yield from framer.finalize()
