"""
Configuration module for the application.

Provides type-safe settings using Pydantic.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from p2p_transfer.domain.value_objects.money import Currency
from p2p_transfer.infrastructure.logger.interfaces import ILoggingConfig


class LoggingConfig(BaseSettings):
    """Configuration for the logging system."""

    app_name: str = "P2P Transfer"
    debug: bool = True  # if True then color console render, else json render
    log_level: str = "INFO"
    enable_file_logging: bool = False
    logs_dir: Path = Path("logs")
    logs_file_name: str = "transfers.log"
    max_file_size_mb: int = 10
    backup_count: int = 5

    @field_validator("log_level", mode="after")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.upper()


class DatabaseConfig(BaseSettings):
    """Configuration for the SQLite store."""

    database_file: str = Field(
        default=":memory:",
        description="Path to SQLite database, ':memory:' for a throwaway one",
    )
    echo: bool = False


class TransferConfig(BaseSettings):
    """Configuration for the transfer engine."""

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts when a wallet changes concurrently",
    )
    retry_wait_seconds: float = Field(
        default=0.05,
        ge=0,
        description="Base of the exponential wait between attempts",
    )
    compensation_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts to write one compensating wallet entry",
    )
    default_currency: Currency = Currency.BRL


class AuthorizerConfig(BaseSettings):
    """External authorization service."""

    url: str = "https://run.mocky.io/v3/8fafdd68-a090-496f-8c9a-3442cf30dae6"
    timeout_seconds: float = Field(default=5.0, gt=0)
    approved_message: str = "Autorizado"


class NotifierConfig(BaseSettings):
    """External notification service."""

    url: str = "https://run.mocky.io/v3/b19f7b9f-9cbf-4fc6-ad22-dc30601aec04"
    timeout_seconds: float = Field(default=5.0, gt=0)
    sent_message: str = "Enviado"


class AppConfig(BaseSettings):
    """Main application configuration."""

    logger: LoggingConfig = Field(default_factory=LoggingConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    transfer: TransferConfig = Field(default_factory=TransferConfig)
    authorizer: AuthorizerConfig = Field(default_factory=AuthorizerConfig)
    notifier: NotifierConfig = Field(default_factory=NotifierConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    @property
    def logger_adapter(self) -> ILoggingConfig:
        """
        Create logging configuration adapter from settings.

        Returns:
            ILoggingConfig: Configuration object for the logging system.
        """
        return self.logger


@lru_cache
def get_config() -> AppConfig:
    return AppConfig()
