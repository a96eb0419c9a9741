from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    # API Settings
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Dukkan Back Office"
    ENVIRONMENT: str = "development"

    # Key-value store backend: "memory" or "dynamodb"
    STORE_BACKEND: str = "memory"

    # AWS Settings
    AWS_REGION: str = "eu-central-1"
    DYNAMODB_ENDPOINT: Optional[str] = None
    DYNAMODB_KV_TABLE: str = "dukkan-kv-dev"

    # Fixed client timeouts for the store
    DYNAMODB_CONNECT_TIMEOUT: int = 5
    DYNAMODB_READ_TIMEOUT: int = 10
    DYNAMODB_MAX_ATTEMPTS: int = 3

    # Optimistic locking on Product / Customer documents
    OPTIMISTIC_LOCK_MAX_ATTEMPTS: int = 5
    OPTIMISTIC_LOCK_BASE_DELAY: float = 0.01

    # Logging
    LOG_LEVEL: Optional[str] = None
    LOG_FORMAT: Optional[str] = None
    LOG_FILE: Optional[str] = None

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:5173"]

    class Config:
        env_file = ".env"

settings = Settings()
