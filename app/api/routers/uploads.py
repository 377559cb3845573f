from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.background import BackgroundTask
from app.api.schemas import UploadSuccessResponse, UploadErrorResponse
from app.api.dependencies import get_upload_orchestrator
from app.services.upload_service import UploadOrchestrator

router = APIRouter(tags=["uploads"])

@router.post(
    "/upload",
    response_model=UploadSuccessResponse,
    responses={
        413: {"model": UploadErrorResponse},
        500: {"model": UploadErrorResponse},
    },
)
async def upload_files(
    request: Request,
    orchestrator: UploadOrchestrator = Depends(get_upload_orchestrator),
):
    """
    Upload one or more files as multipart/form-data.

    The body is parsed as it arrives and every accepted file is written
    while later parts are still being received. The request is all or
    nothing: if any part is rejected or fails, no file is kept.
    """
    outcome = await orchestrator.run(request.headers.get("content-type", ""), request.stream())

    if outcome.succeeded:
        content = UploadSuccessResponse(message=outcome.message).model_dump()
    else:
        content = UploadErrorResponse(error=outcome.message).model_dump()

    # Writes still running after an early failure are swept once the response is out
    background = None
    if orchestrator.has_pending_cleanup:
        background = BackgroundTask(orchestrator.sweep_after_settle)

    return JSONResponse(status_code=outcome.status_code, content=content, background=background)
