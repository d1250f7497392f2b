import os
from pydantic_settings import BaseSettings
from typing import Optional, List

class Settings(BaseSettings):
    # Remote school API settings
    API_BASE_URL: str = os.getenv("API_BASE_URL", "http://localhost:5093/api/")
    API_TIMEOUT: float = 30.0

    # Header carrying the school scope on every remote request
    SCHOOL_ID_HEADER: str = "SchoolID"

    # CORS settings
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:5000"]

    # Number of result submissions allowed in flight during a batch upload
    BATCH_CONCURRENCY: int = 1

    # Schools whose confirmed session is kept in memory
    SESSION_CONTEXT_LIMIT: int = 256

    # Logging settings
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: Optional[str] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

# Create settings instance
settings = Settings()
