"""
Ledger settings.

Values come from the environment or a ``.env`` file in the working
directory; names are case-insensitive (``DATABASE_URL``, ``EXPORT_DIR``...).
"""

from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration of the ledger and its CSV export."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Runtime
    app_name: str = Field(default="personal-finance", description="Application name")
    app_env: Literal["development", "staging", "production"] = Field(
        default="production", description="Deployment environment"
    )
    debug: bool = Field(default=False, description="Verbose diagnostics")
    log_level: str = Field(default="INFO", description="Root log level")
    log_format: Literal["json", "text"] = Field(default="json", description="json or text log lines")
    mask_sensitive_data_in_logs: bool = Field(
        default=True, description="Mask IBANs and card numbers in logs"
    )

    # Locale
    timezone: str = Field(default="Europe/Rome", description="Timezone of stored transaction dates")
    locale: str = Field(default="it_IT", description="Locale for month names and amounts")
    base_currency: str = Field(default="EUR", description="Fallback ISO 4217 currency")

    # Store
    database_url: str = Field(
        default="sqlite:///./data/personal_finance.db",
        description="SQLAlchemy URL of the ledger database",
    )
    database_echo: bool = Field(default=False, description="Echo SQL statements")

    # Export
    export_dir: Optional[str] = Field(
        default=None, description="Where CSV files are written (system temp dir if unset)"
    )
    export_encoding: str = Field(default="utf-8", description="Encoding of CSV files")
    default_date_format: str = Field(
        default="yyyy-MM-dd'T'HH:mm:ssZZZZZ",
        description="LDML pattern preselected for the date column",
    )

    @field_validator("base_currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        code = v.strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError(f"Not an ISO 4217 code: {v!r}")
        return code


settings = Settings()
