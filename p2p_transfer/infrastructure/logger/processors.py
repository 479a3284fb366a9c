from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

import structlog
from structlog.types import EventDict, Processor

from p2p_transfer.domain.value_objects.money import Money
from p2p_transfer.utils.metaclasses import Singleton

from .decorators import register_in
from .enums import ProcessorNames
from .interfaces import (
    BaseLoggerFactory,
    BaseProcessorStrategy,
    ILoggingConfig,
    ILogProcessor,
)


class ProcessorFactory(BaseLoggerFactory[ILogProcessor], metaclass=Singleton):
    pass


class ProcessorBuilder:
    def __init__(
        self,
        factory: ProcessorFactory,
        additional_processors: list[ILogProcessor] | None = None,
    ) -> None:
        self.factory = factory
        self.additional_processors = additional_processors or []

    def build_base_chain(self) -> list[ILogProcessor]:
        return [
            self.factory.create(ProcessorNames.MERGE_CONTEXTVARS),
            self.factory.create(ProcessorNames.ADD_LOGGER_NAME),
            self.factory.create(ProcessorNames.ADD_LOG_LEVEL),
            self.factory.create(ProcessorNames.TIMESTAMP),
            self.factory.create(ProcessorNames.EXC_INFO),
        ]

    def build_shared_chain(
        self, logging_config: ILoggingConfig
    ) -> list[ILogProcessor]:
        chain = self.build_base_chain()
        chain.append(
            self.factory.create(
                ProcessorNames.CONTEXT_ADDER,
                logging_config=logging_config,
            )
        )
        chain.append(self.factory.create(ProcessorNames.DOMAIN_VALUES))
        chain.extend(self.additional_processors)
        return chain

    def build_formatter_wrapper(self) -> ILogProcessor:
        return self.factory.create(ProcessorNames.FORMATTER_WRAPPER)


class DomainValueSerializer:
    """
    Turn domain values in the event dict into plain JSON-friendly values.

    Money becomes ``{"amount": int, "currency": str}``; UUIDs, enums and
    datetimes become strings.
    """

    def __call__(
        self, logger: Any, method_name: str, event_dict: EventDict
    ) -> EventDict:
        for key, value in event_dict.items():
            event_dict[key] = self._convert(value)
        return event_dict

    @staticmethod
    def _convert(value: Any) -> Any:
        if isinstance(value, Money):
            return {"amount": value.amount, "currency": value.currency.value}
        if isinstance(value, UUID):
            return str(value)
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, datetime):
            return value.isoformat()
        return value


class AppContextAdder:
    def __init__(self, app_name: str) -> None:
        self.app_name = app_name

    def __call__(
        self, logger: Any, method_name: str, event_dict: EventDict
    ) -> EventDict:
        event_dict.setdefault("app", self.app_name)
        return event_dict


@register_in(ProcessorFactory, ProcessorNames.MERGE_CONTEXTVARS)
class MergeContextvarsStrategy(BaseProcessorStrategy):
    def __init__(self) -> None:
        self.processor: Processor = structlog.contextvars.merge_contextvars


@register_in(ProcessorFactory, ProcessorNames.ADD_LOGGER_NAME)
class AddLoggerNameStrategy(BaseProcessorStrategy):
    def __init__(self) -> None:
        self.processor: Processor = structlog.stdlib.add_logger_name


@register_in(ProcessorFactory, ProcessorNames.ADD_LOG_LEVEL)
class AddLogLevelStrategy(BaseProcessorStrategy):
    def __init__(self) -> None:
        self.processor: Processor = structlog.stdlib.add_log_level


@register_in(ProcessorFactory, ProcessorNames.TIMESTAMP)
class TimestampStamperStrategy(BaseProcessorStrategy):
    def __init__(self, fmt: str = "iso") -> None:
        self.processor: Processor = structlog.processors.TimeStamper(
            fmt=fmt, utc=True
        )


@register_in(ProcessorFactory, ProcessorNames.EXC_INFO)
class ExcInfoFormatterStrategy(BaseProcessorStrategy):
    def __init__(self) -> None:
        self.processor: Processor = structlog.processors.format_exc_info


@register_in(ProcessorFactory, ProcessorNames.CONTEXT_ADDER)
class AppContextAdderStrategy(BaseProcessorStrategy):
    def __init__(self, logging_config: ILoggingConfig) -> None:
        self.processor: Processor = AppContextAdder(
            app_name=logging_config.app_name
        )


@register_in(ProcessorFactory, ProcessorNames.DOMAIN_VALUES)
class DomainValueSerializerStrategy(BaseProcessorStrategy):
    def __init__(self) -> None:
        self.processor: Processor = DomainValueSerializer()


@register_in(ProcessorFactory, ProcessorNames.FORMATTER_WRAPPER)
class FormatterWrapperStrategy(BaseProcessorStrategy):
    def __init__(self) -> None:
        self.processor: Processor = (
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter
        )
