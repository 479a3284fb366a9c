from .config import (
    AppConfig,
    AuthorizerConfig,
    DatabaseConfig,
    LoggingConfig,
    NotifierConfig,
    TransferConfig,
    get_config,
)

__all__ = [
    "AppConfig",
    "AuthorizerConfig",
    "DatabaseConfig",
    "LoggingConfig",
    "NotifierConfig",
    "TransferConfig",
    "get_config",
]
