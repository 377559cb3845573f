from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from app.core.errors import ProvisioningError, StorageError
from app.utils.file_utils import ensure_directory_exists


class WritableHandle:
    """
    An open write destination returned by a StorageSink.
    """

    def __init__(self, name: str, path: Path, file: Any):
        self.name = name
        self.path = path
        self.file = file
        self.closed = False

    def __repr__(self) -> str:
        return f"WritableHandle(name={self.name!r}, closed={self.closed})"


class StorageSink(ABC):
    """
    Durable storage used by the upload pipeline.

    Every fault surfaces as StorageError (or ProvisioningError for the root),
    so callers never have to guard against raw OS errors.
    """

    @abstractmethod
    async def provision(self) -> None:
        """Make sure the storage root exists and can receive files."""

    @abstractmethod
    async def create_destination(self, unique_name: str) -> WritableHandle:
        """Open a new, empty destination for the given name."""

    @abstractmethod
    async def write(self, handle: WritableHandle, data: bytes) -> None:
        """Append bytes to an open destination."""

    @abstractmethod
    async def finalize(self, handle: WritableHandle) -> None:
        """Flush and close a destination. Finalizing twice is a no-op."""

    @abstractmethod
    async def delete(self, path: Path) -> bool:
        """
        Remove a stored file. Returns False when there was nothing to delete.
        """


class LocalStorageSink(StorageSink):
    """
    StorageSink writing into a directory on the local filesystem.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    async def provision(self) -> None:
        try:
            ensure_directory_exists(self.root)
        except OSError as e:
            raise ProvisioningError(f"Cannot create upload directory {self.root}: {e}") from e

    async def create_destination(self, unique_name: str) -> WritableHandle:
        path = self.root / unique_name
        try:
            # Exclusive create: a name collision must never overwrite another upload
            file = await aiofiles.open(path, "xb")
        except OSError as e:
            raise StorageError(f"Cannot open {unique_name} for writing: {e}") from e
        return WritableHandle(unique_name, path, file)

    async def write(self, handle: WritableHandle, data: bytes) -> None:
        try:
            await handle.file.write(data)
        except (OSError, ValueError) as e:
            raise StorageError(f"Error writing {handle.name}: {e}") from e

    async def finalize(self, handle: WritableHandle) -> None:
        if handle.closed:
            return
        handle.closed = True
        try:
            await handle.file.close()
        except OSError as e:
            raise StorageError(f"Error closing {handle.name}: {e}") from e

    async def delete(self, path: Path) -> bool:
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Error deleting {path.name}: {e}") from e
        return True
