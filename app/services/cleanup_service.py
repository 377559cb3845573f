import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

from app.core.errors import StorageError
from app.services.part_ingestor import PartStream
from app.services.storage import StorageSink

logger = logging.getLogger("cleanup_service")


@dataclass(frozen=True)
class AcceptedFile:
    """A part that passed validation and has a write in flight or completed."""
    generated_name: str
    destination_path: Path
    source: PartStream


class AcceptedFileRegistry:
    """
    Request-scoped, append-only record of every file the request created.

    Registration and purging share one lock so a purge never iterates the
    list while a new file is being appended.
    """

    def __init__(self):
        self._files: List[AcceptedFile] = []
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._files)

    async def register(self, accepted: AcceptedFile) -> None:
        async with self._lock:
            self._files.append(accepted)

    async def purge(self, sink: StorageSink) -> int:
        """
        Delete every registered file from storage.

        Best effort: a failed delete is logged and the remaining files are
        still processed. Returns the number of files actually removed.
        """
        removed = 0
        async with self._lock:
            for accepted in self._files:
                try:
                    if await sink.delete(accepted.destination_path):
                        removed += 1
                        logger.info(f"Cleaned up file: {accepted.generated_name}")
                except StorageError as e:
                    logger.error(f"Error cleaning up file {accepted.generated_name}: {e}")
        return removed
