"""Configuration management using Pydantic Settings"""

from decimal import Decimal
from typing import Dict

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Service
    service_name: str = "loan-engine"
    log_level: str = "INFO"

    # Interest schedule used when the settings record has none (term weeks -> rate)
    default_interest_rates: Dict[int, Decimal] = Field(
        default_factory=lambda: {
            1: Decimal("0.15"),
            2: Decimal("0.20"),
            3: Decimal("0.30"),
            4: Decimal("0.30"),
        }
    )

    # Scoring
    score_history_enabled: bool = True


settings = Settings()
