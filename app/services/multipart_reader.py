"""
Incremental multipart/form-data reader.

Feeds the request body chunk by chunk into python-multipart's push parser and
turns its callbacks into a flat, ordered sequence of part events:

    PartDescriptor, PartChunk*, PartEnd, PartDescriptor, ...

Nothing is buffered beyond the chunk currently being parsed.
"""
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Dict, List, Optional, Union

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header
from starlette.requests import ClientDisconnect

from app.core.errors import MultipartStreamError

DEFAULT_FILE_MEDIA_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class PartDescriptor:
    field_name: str
    raw_filename: Optional[str]  # None for plain form fields
    media_type: str

    @property
    def is_file(self) -> bool:
        return self.raw_filename is not None


@dataclass(frozen=True)
class PartChunk:
    data: bytes


@dataclass(frozen=True)
class PartEnd:
    pass


PartEvent = Union[PartDescriptor, PartChunk, PartEnd]


def _decode(value: bytes) -> str:
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError:
        return value.decode("latin-1")


def describe_part(headers: Dict[bytes, bytes]) -> PartDescriptor:
    """
    Build a PartDescriptor from a part's raw headers (lowercased names).
    """
    _, disposition = parse_options_header(headers.get(b"content-disposition"))
    media_type, _ = parse_options_header(headers.get(b"content-type"))

    filename = disposition.get(b"filename")
    return PartDescriptor(
        field_name=_decode(disposition.get(b"name", b"")),
        raw_filename=_decode(filename) if filename is not None else None,
        media_type=media_type.decode("latin-1").lower() or DEFAULT_FILE_MEDIA_TYPE,
    )


class _PartEventCollector:
    """Collects parser callbacks into PartEvents until drained."""

    def __init__(self):
        self.ended = False
        self._events: List[PartEvent] = []
        self._headers: Dict[bytes, bytes] = {}
        self._header_field = b""
        self._header_value = b""

    def callbacks(self) -> Dict[str, Callable]:
        return {
            "on_part_begin": self.on_part_begin,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_headers_finished": self.on_headers_finished,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_end": self.on_end,
        }

    def on_part_begin(self) -> None:
        self._headers = {}

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        self._headers[self._header_field.lower()] = self._header_value
        self._header_field = b""
        self._header_value = b""

    def on_headers_finished(self) -> None:
        self._events.append(describe_part(self._headers))

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        if end > start:
            self._events.append(PartChunk(bytes(data[start:end])))

    def on_part_end(self) -> None:
        self._events.append(PartEnd())

    def on_end(self) -> None:
        self.ended = True

    def drain(self) -> List[PartEvent]:
        events, self._events = self._events, []
        return events


async def iter_part_events(content_type: str, body: AsyncIterator[bytes]) -> AsyncIterator[PartEvent]:
    """
    Parse a multipart body incrementally and yield its part events in order.

    Raises MultipartStreamError for an unsupported content type, a malformed
    or truncated body, or a client that disconnects mid-request.
    """
    media_type, options = parse_options_header(content_type)
    boundary = options.get(b"boundary")
    if media_type.lower() != b"multipart/form-data" or not boundary:
        raise MultipartStreamError(f"Unsupported content type: {content_type!r}")

    collector = _PartEventCollector()
    parser = MultipartParser(boundary, collector.callbacks())

    try:
        async for chunk in body:
            parser.write(chunk)
            for event in collector.drain():
                yield event
        parser.finalize()
    except MultipartParseError as e:
        raise MultipartStreamError(f"Malformed multipart body: {e}") from e
    except ClientDisconnect as e:
        raise MultipartStreamError("Client disconnected during upload") from e

    for event in collector.drain():
        yield event

    if not collector.ended:
        raise MultipartStreamError("Unexpected end of multipart body")
