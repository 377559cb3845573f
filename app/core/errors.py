"""
Exceptions raised inside the upload pipeline.

Services raise these; the orchestrator turns them into an UploadOutcome and
the router turns the outcome into a JSON response. None of them carry text
that is shown to clients.
"""


class UploadError(Exception):
    """Base class for upload pipeline failures."""


class StorageError(UploadError):
    """A storage operation (open, write, finalize, delete) failed."""


class ProvisioningError(StorageError):
    """The storage root could not be created or is not writable."""


class StreamError(UploadError):
    """Reading a part's byte stream was interrupted."""


class LimitBreach(UploadError):
    """A per-part size cap or the per-request file count was exceeded."""


class MultipartStreamError(UploadError):
    """The request body is not a well-formed multipart/form-data stream."""
