from pathlib import Path
from typing import Dict, List, Optional
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

class Settings(BaseSettings):
    PROJECT_NAME: str = "Upload Gateway"
    API_PREFIX: str = ""

    # Server settings
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"
    CORS_ALLOW_ORIGINS: List[str] = ["*"]

    # Storage settings
    UPLOAD_DIR: Path = Path("uploads")

    # Upload limits
    MAX_FILE_SIZE: int = 10 * 1024 * 1024  # per part, 10 MiB
    MAX_FILES: Optional[int] = None  # file parts per request, unlimited when unset
    PART_QUEUE_SIZE: int = 16  # chunks buffered between the parser and a writer

    # Accepted extension -> declared media type pairs
    ALLOWED_FILE_TYPES: Dict[str, str] = {
        ".jpg": "image/jpeg",
        ".jpeg": "image/jpeg",
        ".png": "image/png",
        ".pdf": "application/pdf",
    }

# Global settings instance
settings = Settings()
