"""Incremental reader for a top-level JSON array.

Reads the source in fixed-size chunks and decodes one element at a time with
``json.JSONDecoder.raw_decode`` over a sliding text buffer. Consumed text is
dropped on every refill, so only the element being decoded (plus at most one
chunk) is held in memory.
"""
import codecs
import json
from typing import Any, BinaryIO, Iterator

from app.core.exceptions import MalformedInput

_WHITESPACE = " \t\n\r"
_BOM = "\ufeff"
# Characters that can continue a number raw_decode has already accepted ("1." -> "1.5").
_NUMBER_TAIL = ".eE+-"


class JsonArrayReader:
    def __init__(self, stream: BinaryIO, chunk_size: int = 64 * 1024, encoding: str = "utf-8"):
        self._stream = stream
        self._chunk_size = chunk_size
        self._text = codecs.getincrementaldecoder(encoding)()
        self._decoder = json.JSONDecoder()
        self._buffer = ""
        self._pos = 0
        self._eof = False

    def _fill(self) -> bool:
        """Append the next chunk to the buffer. False once the source is exhausted."""
        if self._eof:
            return False
        chunk = self._stream.read(self._chunk_size)
        try:
            text = self._text.decode(chunk, final=not chunk)
        except UnicodeDecodeError as exc:
            raise MalformedInput(f"Import file is not valid UTF-8: {exc}") from exc
        if not chunk:
            self._eof = True
        self._buffer = self._buffer[self._pos:] + text
        self._pos = 0
        return bool(chunk) or bool(text)

    def _peek(self) -> str | None:
        """Skip whitespace and return the next character, or None at end of input."""
        while True:
            while self._pos < len(self._buffer) and self._buffer[self._pos] in _WHITESPACE:
                self._pos += 1
            if self._pos < len(self._buffer):
                return self._buffer[self._pos]
            if not self._fill():
                return None

    def _cut_number(self, value: Any, end: int) -> bool:
        return (
            isinstance(value, (int, float))
            and not isinstance(value, bool)
            and self._buffer[end] in _NUMBER_TAIL
        )

    def _decode_value(self) -> Any:
        while True:
            if self._peek() is None:
                raise MalformedInput("Unexpected end of input inside JSON array")
            try:
                value, end = self._decoder.raw_decode(self._buffer, self._pos)
            except json.JSONDecodeError as exc:
                # Possibly an element cut off at the chunk boundary.
                if self._fill():
                    continue
                # Fatal: the scan cannot resynchronise on the next element after a syntax error.
                raise MalformedInput(f"Malformed JSON in import file: {exc.msg}") from exc
            # A value ending exactly at the buffer edge, or a number cut after ".", "e" or a sign,
            # may continue in the next chunk.
            if (end == len(self._buffer) or self._cut_number(value, end)) and self._fill():
                continue
            self._pos = end
            return value

    def __iter__(self) -> Iterator[Any]:
        first = self._peek()
        if first == _BOM:
            self._pos += 1
            first = self._peek()
        if first != "[":
            raise MalformedInput("Expected JSON array at root level")
        self._pos += 1

        if self._peek() == "]":
            self._pos += 1
            return

        while True:
            yield self._decode_value()
            separator = self._peek()
            if separator == ",":
                self._pos += 1
            elif separator == "]":
                self._pos += 1
                return
            elif separator is None:
                raise MalformedInput("Unexpected end of input inside JSON array")
            else:
                raise MalformedInput(f"Expected ',' or ']' in JSON array, got {separator!r}")
