# backend/config.py
from pydantic_settings import BaseSettings
from typing import ClassVar, Optional
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite:///./textile_inventory.db"

    FRONTEND_URL: Optional[str] = None
    LOG_LEVEL: str = "INFO"

    # Pricing policy injected into the totals calculator
    SHIPPING_FLAT_RATE: float = 0.0
    TAX_RATE_PERCENT: float = 0.0

    # Prefixes of the human-readable document numbers
    ORDER_NUMBER_PREFIX: str = "ORD"
    POS_NUMBER_PREFIX: str = "POS"

    class Config:
        env_file: ClassVar[str] = str(env_path)
        extra: ClassVar[str] = "ignore"

settings = Settings()
