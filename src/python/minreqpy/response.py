import json
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Iterator

from requests.structures import CaseInsensitiveDict

from .errors import (
    MinreqError,
    IoError,
    StatusLineOverflowError,
    HeadersOverflowError,
    MalformedChunkLengthError,
    MalformedChunkEndError,
    MalformedContentLengthError,
    InvalidUtf8InResponseError,
    InvalidUtf8InBodyError,
    JsonError,
)
from .request import Method

if TYPE_CHECKING:
    from .connection import HttpStream


_READ_CHUNK_SIZE = 4096
_MAX_CHUNK_SIZE_LINE = 4096
_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")
_BODYLESS_STATUS_CODES = (204, 304)


class _Framing(Enum):
    NONE = "none"
    CHUNKED = "chunked"
    CONTENT_LENGTH = "content-length"
    UNTIL_CLOSE = "until-close"


class ResponseLazy:
    """
    A response whose status line and headers have been read, and whose body
    is still on the wire.

    The body is read on demand through read() or by iterating over the
    response, which yields byte chunks. It can only be consumed once. The
    stream is closed when the body ends or when close() is called.
    """

    def __init__(self, stream: "HttpStream"):
        self.status_code: int = 0
        self.reason_phrase: str = ""
        self.headers: CaseInsensitiveDict = CaseInsensitiveDict()
        self.url: str = ""

        self._stream = stream
        self._buffer: bytearray = bytearray()
        self._scratch: bytearray = bytearray(_READ_CHUNK_SIZE)
        self._eof: bool = False
        self._framing: _Framing = _Framing.NONE
        # Bytes left in the current chunk, or in the whole body for Content-Length.
        self._remaining: int = 0
        self._done: bool = False

    @classmethod
    def from_stream(
        cls,
        stream: "HttpStream",
        max_headers_size: int,
        max_status_line_length: int,
        method: Method = Method.GET,
    ) -> "ResponseLazy":
        response = cls(stream)
        response._read_status_line(max_status_line_length)
        response._read_headers(max_headers_size)
        response._select_framing(method)
        return response

    # --- Body access ---

    def read(self, size: int = -1) -> bytes:
        if size < 0:
            return b"".join(self)

        out = bytearray()
        while len(out) < size:
            piece = self._next_piece(size - len(out))
            if not piece:
                break
            out += piece
        return bytes(out)

    def __iter__(self) -> Iterator[bytes]:
        while True:
            piece = self._next_piece(_READ_CHUNK_SIZE)
            if not piece:
                return
            yield piece

    def close(self) -> None:
        self._done = True
        self._stream.close()

    def __enter__(self) -> "ResponseLazy":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # --- Status line and headers ---

    def _read_status_line(self, max_length: int) -> None:
        line = self._read_line(max_length, StatusLineOverflowError)
        if line is None:
            raise IoError("Connection closed before the status line was received.")
        self.status_code, self.reason_phrase = _parse_status_line(_decode_header_text(line))

    def _read_headers(self, max_headers_size: int) -> None:
        headers_size = 0
        while True:
            line = self._read_line(max_headers_size - headers_size, HeadersOverflowError)
            if line is None:
                raise IoError("Connection closed before the end of the headers.")
            if not line:
                return
            headers_size += len(line)

            name, separator, value = _decode_header_text(line).partition(":")
            if not separator:
                continue
            name = name.strip()
            value = value.strip()
            if name in self.headers:
                self.headers[name] = f"{self.headers[name]}, {value}"
            else:
                self.headers[name] = value

    def _select_framing(self, method: Method) -> None:
        if (
            method is Method.HEAD
            or 100 <= self.status_code < 200
            or self.status_code in _BODYLESS_STATUS_CODES
        ):
            self._framing = _Framing.NONE
            self._finish()
            return

        if "chunked" in self.headers.get("transfer-encoding", "").lower():
            self._framing = _Framing.CHUNKED
            return

        content_length = self.headers.get("content-length")
        if content_length is None:
            self._framing = _Framing.UNTIL_CLOSE
            return

        value = content_length.strip()
        if not (value.isascii() and value.isdigit()):
            raise MalformedContentLengthError(content_length)
        self._framing = _Framing.CONTENT_LENGTH
        self._remaining = int(value)
        if self._remaining == 0:
            self._finish()

    # --- Body framing ---

    def _next_piece(self, limit: int) -> bytes:
        if self._done:
            return b""

        if self._framing is _Framing.CHUNKED:
            if self._remaining == 0:
                self._remaining = self._read_chunk_size()
                if self._remaining == 0:
                    # Trailers are not read; the stream is dropped with them.
                    self._finish()
                    return b""
            piece = self._take(min(limit, self._remaining))
            self._remaining -= len(piece)
            if self._remaining == 0:
                self._expect_chunk_end()
            return piece

        if self._framing is _Framing.CONTENT_LENGTH:
            piece = self._take(min(limit, self._remaining))
            self._remaining -= len(piece)
            if self._remaining == 0:
                self._finish()
            return piece

        if not self._buffer and self._fill() == 0:
            self._finish()
            return b""
        return self._take(limit)

    def _read_chunk_size(self) -> int:
        line = self._read_line(_MAX_CHUNK_SIZE_LINE, MalformedChunkLengthError)
        if line is None:
            raise IoError("Connection closed before the next chunk was received.")

        # Chunk extensions (";name=value") are ignored.
        size = line.split(b";", 1)[0].strip()
        if not size or any(c not in _HEX_DIGITS for c in size):
            raise MalformedChunkLengthError()
        return int(size, 16)

    def _expect_chunk_end(self) -> None:
        while len(self._buffer) < 2:
            if self._fill() == 0:
                raise IoError("Connection closed before the end of the chunk.")
        if self._buffer[:2] != b"\r\n":
            raise MalformedChunkEndError()
        del self._buffer[:2]

    def _finish(self) -> None:
        if not self._done:
            self.close()

    # --- Buffer management ---

    def _fill(self) -> int:
        """Append one read from the stream to the buffer. Returns 0 at EOF."""
        if self._eof:
            return 0

        bytes_read = self._stream.read_into(self._scratch)
        if bytes_read == 0:
            self._eof = True
            return 0
        self._buffer += memoryview(self._scratch)[:bytes_read]
        return bytes_read

    def _take(self, limit: int) -> bytes:
        """Remove and return up to `limit` buffered bytes, reading if the buffer is empty."""
        if not self._buffer and self._fill() == 0:
            raise IoError("Connection closed before the full body was received.")
        piece = bytes(self._buffer[:limit])
        del self._buffer[:limit]
        return piece

    def _read_line(self, max_length: int, overflow: Callable[[], MinreqError]) -> bytes | None:
        """
        Remove and return the next line without its terminator, or None if the
        stream ends first. The length cap is checked while bytes arrive, so
        nothing beyond max_length plus one read is ever buffered.
        """
        scan_from = 0
        while True:
            newline = self._buffer.find(b"\n", scan_from)
            if newline != -1:
                line = bytes(self._buffer[:newline])
                del self._buffer[:newline + 1]
                if line.endswith(b"\r"):
                    line = line[:-1]
                if len(line) > max_length:
                    raise overflow()
                return line

            pending = len(self._buffer)
            if self._buffer.endswith(b"\r"):
                pending -= 1
            if pending > max_length:
                raise overflow()

            scan_from = len(self._buffer)
            if self._fill() == 0:
                return None


@dataclass
class Response:
    """A response with the whole body in memory."""

    status_code: int
    reason_phrase: str
    headers: CaseInsensitiveDict
    url: str
    body: bytes

    @classmethod
    def from_lazy(cls, lazy: ResponseLazy) -> "Response":
        with lazy:
            body = lazy.read()
        return cls(
            status_code=lazy.status_code,
            reason_phrase=lazy.reason_phrase,
            headers=lazy.headers,
            url=lazy.url,
            body=body,
        )

    def as_str(self) -> str:
        try:
            return self.body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidUtf8InBodyError(f"response body is not valid utf-8: {e}") from e

    def json(self) -> Any:
        try:
            return json.loads(self.as_str())
        except json.JSONDecodeError as e:
            raise JsonError(f"response body is not valid JSON: {e}") from e


def _decode_header_text(line: bytes) -> str:
    try:
        return line.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidUtf8InResponseError() from e


def _parse_status_line(line: str) -> tuple[int, str]:
    # HTTP-version SP status-code SP reason-phrase
    parts = line.split(" ", 2)
    if len(parts) >= 2 and parts[1].isascii() and parts[1].isdigit():
        reason_phrase = parts[2] if len(parts) == 3 else ""
        return int(parts[1]), reason_phrase
    return 503, "Server did not provide a status line"
