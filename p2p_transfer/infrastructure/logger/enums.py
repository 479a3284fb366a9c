import logging
from enum import Enum, StrEnum


class LoggersToHijack(Enum):
    SQLALCHEMY_ENGINE = ("sqlalchemy.engine", logging.WARNING)
    SQLALCHEMY_POOL = ("sqlalchemy.pool", logging.WARNING)
    HTTPX = ("httpx", logging.WARNING)
    HTTPCORE = ("httpcore", logging.WARNING)

    @property
    def logger_name(self) -> str:
        return self.value[0]

    @property
    def logger_level(self) -> int:
        return self.value[1]

    @property
    def logger(self) -> logging.Logger:
        return logging.getLogger(self.logger_name)

    def hijack(self) -> None:
        logger = self.logger
        logger.handlers = []
        logger.propagate = True
        logger.setLevel(self.logger_level)


class ProcessorNames(StrEnum):
    MERGE_CONTEXTVARS = "merge_contextvars"
    ADD_LOGGER_NAME = "add_logger_name"
    ADD_LOG_LEVEL = "add_log_level"
    TIMESTAMP = "timestamp_stamper"
    EXC_INFO = "exc_info_formatter"

    CONTEXT_ADDER = "context_adder"
    DOMAIN_VALUES = "domain_values"

    FORMATTER_WRAPPER = "formatter_wrapper"


class HandlerNames(StrEnum):
    FILE = "file"
    CONSOLE = "console"


class RendererNames(StrEnum):
    JSON = "json"
    CONSOLE = "console"
