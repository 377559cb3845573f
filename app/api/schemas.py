from pydantic import BaseModel

class UploadSuccessResponse(BaseModel):
    message: str

class UploadErrorResponse(BaseModel):
    error: str
