from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # API Settings
    PROJECT_NAME: str = "School Billing API"
    API_V1_STR: str = "/api/v1"
    PROJECT_VERSION: str = "0.1.0"
    DESCRIPTION: str = "Tuition billing, scholarships and partial payments for the school dashboard"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # School REST API (owns persistence)
    SCHOOL_API_URL: str = "http://localhost:3000/api/v1"
    SCHOOL_API_TIMEOUT_SECONDS: float = 10.0

    # Dates are normalized to midnight in this timezone before comparing
    SCHOOL_TIMEZONE: str = "UTC"

    # List cache
    CACHE_TTL_SECONDS: float = 30.0

    # Module a caller must hold to reach the billing endpoints
    BILLING_MODULE_KEY: str = "billing"

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:3000"]

    # JWT issued by the identity provider
    JWT_SECRET: str = "change-this-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str = ""

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "standard"

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env"
    )

settings = Settings()
