from fastapi import Depends
from app.core.config import Settings, settings
from app.services.storage import LocalStorageSink, StorageSink
from app.services.upload_service import UploadOrchestrator

def get_settings() -> Settings:
    return settings

def get_storage_sink(app_settings: Settings = Depends(get_settings)) -> StorageSink:
    """
    Dependency to get the storage sink rooted at the configured upload directory.
    """
    return LocalStorageSink(app_settings.UPLOAD_DIR)

def get_upload_orchestrator(
    sink: StorageSink = Depends(get_storage_sink),
    app_settings: Settings = Depends(get_settings),
) -> UploadOrchestrator:
    """
    Dependency to get a fresh orchestrator; one per request.
    """
    return UploadOrchestrator(sink, app_settings)
