from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # API Settings
    PROJECT_NAME: str = "Haulbook API"
    API_V1_STR: str = "/api/v1"
    PROJECT_VERSION: str = "0.1.0"
    DESCRIPTION: str = "Orders, suppliers, parties and ledger allocation for a haulage business"

    # MongoDB
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "haulbook"

    # Payments
    # Gap (in minor currency units) below which an order counts as paid.
    PAYMENT_TOLERANCE_CENTS: int = 10000

    # Logging
    LOG_LEVEL: str = "INFO"

    # Revert allocations when ledger entries are deleted by another client.
    # Requires a replica set (change streams).
    WATCH_LEDGER_CHANGES: bool = False

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env"
    )

settings = Settings()
