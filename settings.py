from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # `.env.prod` takes priority over `.env`
        env_file=(".env", ".env.prod"),
        extra="ignore",
    )

    # Empty means "derive from DB_* variables or fall back to local SQLite"
    database_url: str = ""

    # Cognito Settings (only consulted when auth_enabled is set)
    auth_enabled: bool = False
    cognito_user_pool_id: Optional[str] = None
    cognito_app_client_id: Optional[str] = None
    aws_region: str = "us-east-1"

    log_format: str = "json"
    log_level: str = "INFO"

    # Referral ledger behaviour
    referral_ledger_atomic: bool = True
    apply_impact_on_create: bool = True

    # Job lifecycle
    default_restore_status: str = "interested"

    potential_sources_limit: int = 50


@lru_cache()
def get_settings() -> Settings:
    return Settings()
