"""
All-or-nothing ingestion of a multipart upload request.

The orchestrator reads part events sequentially, validates each file part,
and hands accepted parts to concurrent PartIngestor tasks. Once the body is
exhausted it waits for every task to settle and decides the single outcome
of the request. Any rejected part, failed write, limit breach or parser
error fails the whole request and removes every file the request created.
"""
import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Callable, List, Optional

from fastapi import status

from app.core.config import Settings, settings as default_settings
from app.core.errors import LimitBreach, MultipartStreamError, ProvisioningError, StorageError
from app.services.cleanup_service import AcceptedFile, AcceptedFileRegistry
from app.services.multipart_reader import PartChunk, PartDescriptor, PartEvent, iter_part_events
from app.services.part_ingestor import IngestResult, PartIngestor, PartStream
from app.services.storage import StorageSink
from app.utils.file_utils import build_unique_name, new_token, sanitize_filename
from app.utils.validators import TypeValidator

logger = logging.getLogger("upload_service")

SUCCESS_MESSAGE = "All files uploaded successfully"
PARTIAL_FAILURE_MESSAGE = "Some files failed to upload"
LIMIT_EXCEEDED_MESSAGE = "File size limit exceeded"
UPLOAD_FAILED_MESSAGE = "File upload failed"
PROVISIONING_FAILED_MESSAGE = "Failed to create upload directory"


class UploadPhase(str, Enum):
    RECEIVING = "receiving"
    DRAINING = "draining"
    SETTLING = "settling"
    RESPONDING = "responding"


@dataclass(frozen=True)
class UploadOutcome:
    """
    The single result of a request. accepted_count is the number of parts
    that passed validation and got a destination, whether or not their
    files were later removed by cleanup.
    """
    status_code: int
    message: str
    accepted_count: int = 0
    failed_count: int = 0
    limit_breached: bool = False

    @property
    def succeeded(self) -> bool:
        return self.status_code == status.HTTP_200_OK


@dataclass
class UploadState:
    """Request-scoped failure flags and the single response slot."""
    has_error: bool = False
    limit_breached: bool = False
    failed_count: int = 0
    response_claimed: bool = False
    outcome: Optional[UploadOutcome] = None

    def claim_response(self) -> bool:
        """
        Reserve the response of the request. Only the first caller gets True.
        """
        if self.response_claimed:
            return False
        self.response_claimed = True
        return True


class UploadOrchestrator:
    """
    Drive one upload request from its multipart body to a single outcome.

    Every path that produces a response claims it on UploadState first, so
    events arriving after the response (a late limit breach, a second
    finish) neither respond again nor repeat the cleanup.
    """

    def __init__(
        self,
        sink: StorageSink,
        app_settings: Settings = default_settings,
        token_factory: Callable[[], str] = new_token,
    ):
        self._sink = sink
        self._settings = app_settings
        self._token_factory = token_factory
        self._validator = TypeValidator(app_settings.ALLOWED_FILE_TYPES)

        self.state = UploadState()
        self.phase = UploadPhase.RECEIVING
        self.registry = AcceptedFileRegistry()

        self._tasks: List["asyncio.Task[IngestResult]"] = []
        self._part: Optional[PartDescriptor] = None
        self._stream: Optional[PartStream] = None
        self._part_bytes = 0
        self._file_parts = 0
        self._short_circuited = False

    async def run(self, content_type: str, body: AsyncIterator[bytes]) -> UploadOutcome:
        """
        Consume the whole request and return its outcome.
        """
        try:
            await self._sink.provision()
        except ProvisioningError as e:
            logger.error(f"Error creating upload directory: {e}")
            return await self._short_circuit(
                status.HTTP_500_INTERNAL_SERVER_ERROR, PROVISIONING_FAILED_MESSAGE, "provisioning failure"
            )

        try:
            async with aclosing(iter_part_events(content_type, body)) as events:
                async for event in events:
                    await self._dispatch(event)
        except LimitBreach as e:
            logger.error(f"Upload limit reached: {e}")
            await self.handle_limit_breach()
        except MultipartStreamError as e:
            logger.error(f"Multipart parser error: {e}")
            await self.handle_parser_error()
        else:
            self.phase = UploadPhase.DRAINING
            await self.finish()

        return self.state.outcome

    async def _dispatch(self, event: PartEvent) -> None:
        if isinstance(event, PartDescriptor):
            await self.handle_part(event)
        elif isinstance(event, PartChunk):
            await self.handle_chunk(event.data)
        else:
            await self.handle_part_end()

    async def handle_part(self, part: PartDescriptor) -> None:
        """
        Validate a new part and, when it is accepted, start writing it.
        Skipped and rejected parts have their bytes discarded.
        """
        self._stream = None
        self._part_bytes = 0

        if self.state.response_claimed:
            logger.info(f"Ignoring part {part.field_name!r}: response already sent")
            self._part = None
            return

        self._part = part
        if not part.is_file:
            return

        self._file_parts += 1
        max_files = self._settings.MAX_FILES
        if max_files is not None and self._file_parts > max_files:
            raise LimitBreach(f"More than {max_files} files in one request")

        if not part.raw_filename:
            logger.info(f"Skipping empty filename for field: {part.field_name}")
            return

        base, extension = sanitize_filename(part.raw_filename)
        reason = self._validator.rejection_reason(extension, part.media_type)
        if reason:
            logger.info(f"{reason} for {base}{extension}")
            self.state.has_error = True
            return

        unique_name = build_unique_name(base, extension, self._token_factory())
        try:
            handle = await self._sink.create_destination(unique_name)
        except StorageError as e:
            logger.error(f"Error creating file {unique_name}: {e}")
            self.state.has_error = True
            self.state.failed_count += 1
            return

        stream = PartStream(self._settings.PART_QUEUE_SIZE)
        await self.registry.register(AcceptedFile(unique_name, handle.path, stream))
        ingestor = PartIngestor(self._sink, handle, stream)
        self._tasks.append(asyncio.create_task(ingestor.run()))
        self._stream = stream

    async def handle_chunk(self, data: bytes) -> None:
        if self._part is None or not self._part.is_file:
            return
        self._part_bytes += len(data)
        if self._part_bytes > self._settings.MAX_FILE_SIZE:
            raise LimitBreach(
                f"Part {self._part.field_name!r} exceeds {self._settings.MAX_FILE_SIZE} bytes"
            )
        if self._stream is not None:
            await self._stream.feed(data)

    async def handle_part_end(self) -> None:
        if self._stream is not None:
            await self._stream.close()
        self._part = None
        self._stream = None

    async def handle_limit_breach(self) -> Optional[UploadOutcome]:
        return await self._short_circuit(
            413,
            LIMIT_EXCEEDED_MESSAGE,
            "upload limit exceeded",
            limit_breached=True,
        )

    async def handle_parser_error(self) -> Optional[UploadOutcome]:
        return await self._short_circuit(
            status.HTTP_500_INTERNAL_SERVER_ERROR, UPLOAD_FAILED_MESSAGE, "multipart parser error"
        )

    async def finish(self) -> Optional[UploadOutcome]:
        """
        Wait for every started write, then respond for the whole request.
        """
        if self.state.response_claimed:
            logger.info("Ignoring end of upload: response already sent")
            return None

        self.phase = UploadPhase.SETTLING
        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        failed = 0
        for result in results:
            if isinstance(result, BaseException):
                logger.error(f"Upload task crashed: {result!r}")
                failed += 1
            elif result is not IngestResult.COMPLETED:
                failed += 1
        self.state.failed_count += failed

        if not self.state.claim_response():
            return None
        if self.state.has_error or failed:
            await self.registry.purge(self._sink)
            return self._respond(status.HTTP_500_INTERNAL_SERVER_ERROR, PARTIAL_FAILURE_MESSAGE)
        return self._respond(status.HTTP_200_OK, SUCCESS_MESSAGE)

    @property
    def has_pending_cleanup(self) -> bool:
        """True when a short-circuit response may have left writes running."""
        return self._short_circuited and bool(self._tasks)

    async def sweep_after_settle(self) -> None:
        """
        After a short-circuit response, wait for the writes that were still
        running and remove anything they left behind.
        """
        await asyncio.gather(*self._tasks, return_exceptions=True)
        removed = await self.registry.purge(self._sink)
        if removed:
            logger.warning(f"Removed {removed} file(s) written after the upload was aborted")

    async def _short_circuit(
        self, status_code: int, message: str, reason: str, limit_breached: bool = False
    ) -> Optional[UploadOutcome]:
        if not self.state.claim_response():
            logger.info(f"Ignoring {reason}: response already sent")
            return None

        self._short_circuited = True
        self.state.has_error = True
        if limit_breached:
            self.state.limit_breached = True
        if self._stream is not None:
            self._stream.fail(reason)
            self._stream = None

        await self.registry.purge(self._sink)
        return self._respond(status_code, message)

    def _respond(self, status_code: int, message: str) -> UploadOutcome:
        self.phase = UploadPhase.RESPONDING
        self.state.outcome = UploadOutcome(
            status_code=status_code,
            message=message,
            accepted_count=len(self.registry),
            failed_count=self.state.failed_count,
            limit_breached=self.state.limit_breached,
        )
        return self.state.outcome
