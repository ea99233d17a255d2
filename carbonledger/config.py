"""Configuration settings for carbonledger."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class CarbonLedgerSettings(BaseSettings):
    """Client settings loaded from environment (CARBONLEDGER_*)."""

    model_config = SettingsConfigDict(
        env_prefix="CARBONLEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra env vars not in model
    )

    # Transaction status auto-dismiss delays
    success_dismiss_seconds: float = 2.0
    error_dismiss_seconds: float = 3.0
    pending_dismiss_seconds: Optional[float] = None  # None = until superseded

    # Operation history
    history_capacity: int = 10

    # Records
    business_key_prefix: str = "carbon-"

    # Decryption relayer (HttpRelayerProofGateway)
    relayer_url: Optional[str] = None
    relayer_timeout_seconds: float = 30.0

    # Logging
    log_level: str = "INFO"
    log_dir: Optional[str] = None


@lru_cache
def get_settings() -> CarbonLedgerSettings:
    """Get cached settings instance."""
    return CarbonLedgerSettings()
