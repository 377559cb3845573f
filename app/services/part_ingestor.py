import asyncio
import logging
from enum import Enum

from app.core.errors import StorageError, StreamError
from app.services.storage import StorageSink, WritableHandle

logger = logging.getLogger("part_ingestor")

_EOF = object()


class PartStream:
    """
    Bounded channel carrying one part's bytes from the orchestrator to its
    ingestor.

    The producer feeds chunks and closes the stream at the end of the part,
    or fails it when the request is aborted mid-part. The consumer iterates
    the chunks and abandons the stream if it stops reading early, after
    which fed chunks are dropped instead of blocking the producer and
    iteration ends.
    """

    def __init__(self, maxsize: int = 16):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._finished = False
        self._abandoned = False

    async def feed(self, data: bytes) -> None:
        if self._abandoned:
            return
        await self._queue.put(data)

    async def close(self) -> None:
        if self._abandoned:
            return
        await self._queue.put(_EOF)

    def fail(self, reason: str) -> None:
        """
        Interrupt the consumer with a StreamError, discarding queued chunks.
        """
        if self._abandoned:
            return
        self._discard_queued()
        self._queue.put_nowait(StreamError(reason))

    def abandon(self) -> None:
        self._abandoned = True
        self._discard_queued()

    def _discard_queued(self) -> None:
        while not self._queue.empty():
            self._queue.get_nowait()

    def __aiter__(self):
        return self

    async def __anext__(self) -> bytes:
        if self._finished or self._abandoned:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _EOF:
            self._finished = True
            raise StopAsyncIteration
        if isinstance(item, StreamError):
            self._finished = True
            raise item
        return item


class IngestResult(str, Enum):
    COMPLETED = "completed"
    SOURCE_ERROR = "sourceError"
    WRITE_ERROR = "writeError"


class PartIngestor:
    """
    Copy one accepted part from its PartStream into a storage destination.

    On a read or write failure the ingestor removes its own partial file
    before reporting, independently of any request-wide cleanup.
    """

    def __init__(self, sink: StorageSink, handle: WritableHandle, source: PartStream):
        self._sink = sink
        self._handle = handle
        self._source = source

    async def run(self) -> IngestResult:
        try:
            return await self._copy()
        finally:
            self._source.abandon()

    async def _copy(self) -> IngestResult:
        name = self._handle.name
        try:
            async for chunk in self._source:
                await self._sink.write(self._handle, chunk)
            await self._sink.finalize(self._handle)
        except StreamError as e:
            logger.error(f"Error reading file {name}: {e}")
            await self._discard_partial_file()
            return IngestResult.SOURCE_ERROR
        except StorageError as e:
            logger.error(f"Error writing file {name}: {e}")
            await self._discard_partial_file()
            return IngestResult.WRITE_ERROR

        logger.info(f"Upload complete: {name}")
        return IngestResult.COMPLETED

    async def _discard_partial_file(self) -> None:
        name = self._handle.name
        try:
            await self._sink.finalize(self._handle)
        except StorageError as e:
            logger.warning(f"Error closing partial file {name}: {e}")
        try:
            if await self._sink.delete(self._handle.path):
                logger.info(f"Cleaned up partial file: {name}")
        except StorageError as e:
            logger.error(f"Error cleaning up file {name}: {e}")
