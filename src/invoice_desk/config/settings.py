"""Configuration settings for the invoice delivery pipeline."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Flat settings read from environment variables or a local .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Data service
    api_url: str = Field(
        default="http://localhost:8745/api", validation_alias="INVOICE_API_URL"
    )
    api_token: SecretStr = Field(..., validation_alias="INVOICE_API_TOKEN")
    api_timeout: float = Field(
        default=20.0,
        validation_alias="INVOICE_API_TIMEOUT",
        description="Per-request HTTP timeout in seconds",
    )
    api_max_retries: int = Field(default=2, validation_alias="INVOICE_API_MAX_RETRIES")

    # Templates
    baseline_template: str = Field(default="template1", validation_alias="BASELINE_TEMPLATE")

    # Print channel
    print_timeout_seconds: float = Field(
        default=30.0, validation_alias="PRINT_TIMEOUT_SECONDS"
    )
    print_command: str = Field(default="lp", validation_alias="PRINT_COMMAND")

    # Chat hand-off
    chat_web_host: str = Field(default="web.whatsapp.com", validation_alias="CHAT_WEB_HOST")
    default_country_code: str = Field(default="91", validation_alias="DEFAULT_COUNTRY_CODE")

    # Email channel
    email_send_as: str = Field(default="companyOwner", validation_alias="EMAIL_SEND_AS")
    user_role: str = Field(default="user", validation_alias="USER_ROLE")

    # Local output
    download_dir: str = Field(default=".", validation_alias="DOWNLOAD_DIR")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
