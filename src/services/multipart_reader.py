"""
Pull-style multipart reader over an async byte stream.

python-multipart parses by pushing callbacks; the upload handler wants to ask for
one part at a time and hand its bytes straight to a storage backend. The reader
feeds request chunks to the parser only when the consumer needs more events, so
at most one network chunk is held in memory.

Read failures are classified by type:

- `UploadInterruptedError` when the body ends before the closing boundary, the
  client disconnects, or no data arrives within the idle read timeout.
- `MultipartFramingError` when the bytes are not valid multipart data.
"""

import asyncio
from collections import deque
from collections.abc import AsyncIterator
from email.utils import decode_rfc2231
from enum import Enum
from urllib.parse import unquote

from loguru import logger
from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header
from starlette.requests import ClientDisconnect

from src.core.exceptions import (
    InvalidContentTypeError,
    MultipartFramingError,
    UploadInterruptedError,
)


class _Event(Enum):
    HEADERS = "headers"
    DATA = "data"
    PART_END = "part_end"


def parse_boundary(content_type: str | None) -> bytes:
    """Return the multipart boundary from a Content-Type header value."""
    if not content_type:
        raise InvalidContentTypeError()
    media_type, params = parse_options_header(content_type)
    if not media_type.lower().startswith(b"multipart/"):
        raise InvalidContentTypeError()
    boundary = params.get(b"boundary", b"")
    if not boundary:
        raise InvalidContentTypeError(details={"reason": "missing boundary"})
    return boundary


def _decode_extended_value(value: bytes) -> str:
    charset, _, encoded = decode_rfc2231(value.decode("latin-1"))
    try:
        return unquote(encoded, encoding=charset or "utf-8", errors="replace")
    except LookupError:
        return unquote(encoded, errors="replace")


class MultipartPart:
    """One part of the body. Iterate it (once) to receive its bytes."""

    def __init__(self, reader: "MultipartReader", headers: dict[str, str]) -> None:
        self.headers = headers
        self._reader = reader
        self.done = False

        disposition = headers.get("content-disposition", "").encode("latin-1")
        _, options = parse_options_header(disposition)
        self.name = options.get(b"name", b"").decode("utf-8", errors="replace")
        self.filename = options.get(b"filename", b"").decode("utf-8", errors="replace")
        # RFC 5987 `filename*=charset'lang'value`. Newer python-multipart releases decode
        # it into `filename` already; older ones pass it through under its own key
        extended = options.get(b"filename*")
        if extended:
            self.filename = _decode_extended_value(extended)

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.chunks()

    async def chunks(self) -> AsyncIterator[bytes]:
        while not self.done:
            event = await self._reader.next_event()
            if event is None:
                # Stream already reported its failure to whoever was reading
                self.done = True
                return
            kind, payload = event
            if kind is _Event.DATA:
                yield payload
            elif kind is _Event.PART_END:
                self.done = True


class MultipartReader:
    """Produce `MultipartPart`s lazily, in wire order, from an async chunk stream."""

    def __init__(
        self,
        stream: AsyncIterator[bytes],
        boundary: bytes,
        read_timeout: float | None = None,
    ) -> None:
        self._stream = stream
        self._read_timeout = read_timeout
        self._events: deque[tuple[_Event, object]] = deque()
        self._current: MultipartPart | None = None
        self._error: MultipartFramingError | None = None
        self._finished = False
        self._exhausted = False
        self._received = 0

        self._header_field = bytearray()
        self._header_value = bytearray()
        self._headers: dict[str, str] = {}

        self._parser = MultipartParser(
            boundary,
            callbacks={
                "on_part_begin": self._on_part_begin,
                "on_header_field": self._on_header_field,
                "on_header_value": self._on_header_value,
                "on_header_end": self._on_header_end,
                "on_headers_finished": self._on_headers_finished,
                "on_part_data": self._on_part_data,
                "on_part_end": self._on_part_end,
                "on_end": self._on_end,
            },
        )

    @property
    def bytes_received(self) -> int:
        return self._received

    async def next_part(self) -> MultipartPart | None:
        """Return the next part, or None once the body is fully consumed.

        Any unread data of the previous part is drained first.
        """
        if self._current is not None and not self._current.done:
            async for _ in self._current:
                pass
        self._current = None

        if self._error is not None:
            raise self._error

        event = await self.next_event()
        if event is None:
            return None
        kind, payload = event
        if kind is not _Event.HEADERS:
            raise MultipartFramingError(message=f"unexpected multipart event {kind.value}")

        self._current = MultipartPart(self, payload)  # type: ignore[arg-type]
        return self._current

    async def next_event(self) -> tuple[_Event, object] | None:
        while not self._events:
            if self._finished or self._exhausted:
                return None
            await self._feed()
        return self._events.popleft()

    async def _feed(self) -> None:
        try:
            async with asyncio.timeout(self._read_timeout):
                chunk = await anext(self._stream, None)
        except TimeoutError as e:
            self._exhausted = True
            msg = f"unexpected EOF: no data received for {self._read_timeout}s"
            raise UploadInterruptedError(message=msg) from e
        except ClientDisconnect as e:
            self._exhausted = True
            msg = "unexpected EOF: client disconnected"
            raise UploadInterruptedError(message=msg) from e

        if chunk is None:
            self._exhausted = True
            self._parser.finalize()
            # An empty body simply has no parts
            if self._received and not self._finished:
                logger.debug(f"Body ended after {self._received} bytes without closing boundary")
                msg = "unexpected EOF: body ended before the closing boundary"
                raise UploadInterruptedError(message=msg)
            return

        if not chunk:
            return
        self._received += len(chunk)
        try:
            self._parser.write(chunk)
        except MultipartParseError as e:
            self._exhausted = True
            self._error = MultipartFramingError(message=f"malformed multipart body: {e}")
            raise self._error from e

    # parser callbacks

    def _on_part_begin(self) -> None:
        self._headers = {}

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field.extend(data[start:end])

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value.extend(data[start:end])

    def _on_header_end(self) -> None:
        field = self._header_field.decode("latin-1").strip().lower()
        # latin-1 keeps the raw header bytes recoverable
        self._headers[field] = self._header_value.decode("latin-1").strip()
        self._header_field.clear()
        self._header_value.clear()

    def _on_headers_finished(self) -> None:
        self._events.append((_Event.HEADERS, self._headers))

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        if end > start:
            self._events.append((_Event.DATA, bytes(data[start:end])))

    def _on_part_end(self) -> None:
        self._events.append((_Event.PART_END, None))

    def _on_end(self) -> None:
        self._finished = True
