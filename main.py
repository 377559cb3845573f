import logging
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.api.routers import root, uploads
from app.core.config import settings
from app.middleware.request_logging import RequestLoggingMiddleware

# Configure logging
logging.basicConfig(level=settings.LOG_LEVEL)

# Create FastAPI application
app = FastAPI(title=settings.PROJECT_NAME)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(root.router)
app.include_router(uploads.router, prefix=settings.API_PREFIX)

if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.HOST, port=settings.PORT, reload=True)
