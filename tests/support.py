import asyncio
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from app.core.config import Settings
from app.core.errors import ProvisioningError, StorageError
from app.services.storage import StorageSink, WritableHandle
from app.services.upload_service import UploadOrchestrator

BOUNDARY = "----uploadgatewaytestboundary"
MULTIPART_CONTENT_TYPE = f"multipart/form-data; boundary={BOUNDARY}"

# (field name, filename or None for a plain field, content type or None, data)
Part = Tuple[str, Optional[str], Optional[str], bytes]


def build_multipart(parts: Sequence[Part], boundary: str = BOUNDARY) -> bytes:
    """Encode parts as a multipart/form-data body."""
    body = b""
    for field_name, filename, content_type, data in parts:
        disposition = f'form-data; name="{field_name}"'
        if filename is not None:
            disposition += f'; filename="{filename}"'
        head = f"--{boundary}\r\nContent-Disposition: {disposition}\r\n"
        if content_type:
            head += f"Content-Type: {content_type}\r\n"
        body += head.encode() + b"\r\n" + data + b"\r\n"
    body += f"--{boundary}--\r\n".encode()
    return body


async def body_chunks(body: bytes, chunk_size: Optional[int] = None):
    """Yield a body the way request.stream() does, optionally in small pieces."""
    if not chunk_size:
        yield body
    else:
        for i in range(0, len(body), chunk_size):
            yield body[i:i + chunk_size]
    yield b""


class MemoryStorageSink(StorageSink):
    """
    In-memory StorageSink. Names containing one of `fail_write_for` fail on
    write, names containing one of `fail_create_for` fail on open.
    """

    def __init__(
        self,
        fail_write_for: Iterable[str] = (),
        fail_create_for: Iterable[str] = (),
        fail_provision: bool = False,
    ):
        self.files: Dict[Path, bytes] = {}
        self.deleted: List[Path] = []
        self._fail_write_for = tuple(fail_write_for)
        self._fail_create_for = tuple(fail_create_for)
        self._fail_provision = fail_provision

    async def provision(self) -> None:
        if self._fail_provision:
            raise ProvisioningError("read-only filesystem")

    async def create_destination(self, unique_name: str) -> WritableHandle:
        if any(marker in unique_name for marker in self._fail_create_for):
            raise StorageError("permission denied")
        path = Path("/memory") / unique_name
        if path in self.files:
            raise StorageError("file exists")
        self.files[path] = b""
        return WritableHandle(unique_name, path, bytearray())

    async def write(self, handle: WritableHandle, data: bytes) -> None:
        await asyncio.sleep(0)
        if any(marker in handle.name for marker in self._fail_write_for):
            raise StorageError("disk full")
        handle.file.extend(data)
        # A deleted file keeps receiving writes without reappearing, like an unlinked inode
        if handle.path in self.files:
            self.files[handle.path] = bytes(handle.file)

    async def finalize(self, handle: WritableHandle) -> None:
        handle.closed = True

    async def delete(self, path: Path) -> bool:
        self.deleted.append(path)
        return self.files.pop(path, None) is not None


async def run_upload(
    sink: StorageSink,
    parts: Sequence[Part],
    app_settings: Optional[Settings] = None,
    chunk_size: Optional[int] = None,
    **kwargs,
):
    """Run one orchestrator over an encoded body; returns (orchestrator, outcome)."""
    orchestrator = UploadOrchestrator(sink, app_settings or Settings(), **kwargs)
    body = build_multipart(parts)
    outcome = await orchestrator.run(MULTIPART_CONTENT_TYPE, body_chunks(body, chunk_size))
    return orchestrator, outcome
