# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
"""
Observability module for the cron dispatcher.

Classes:
- ObservabilityContextManager: Singleton for context management
- StructuredLogger: Logger with context injection
- LoggerFactory: Factory for creating loggers
- JSONFormatter/ConsoleFormatter: Log formatters

Events:
- DispatchEvent: frequency run and tenant pipeline events

Usage:
    from src.core.observability import (
        initialize_logging,
        get_logger,
    )

    # Initialize once at startup
    initialize_logging(level=logging.INFO, log_format="json")

    # Get logger
    logger = get_logger(__name__)

"""

from src.core.observability.context import (
    ContextData,
    ObservabilityContextManager,
    ObservabilityScope,
    RunScope,
    TenantScope,
    get_correlation_id,
    set_correlation_id,
    get_tenant_id,
    get_frequency,
    clear_context,
)

from src.core.observability.events import (
    LogLevel,
    DispatchEvent,
    create_dispatch_event,
)

from src.core.observability.logger import (
    LogFormatter,
    JSONFormatter,
    ConsoleFormatter,
    StructuredLogger,
    LoggerFactory,
    initialize_logging,
    get_logger,
)

from src.core.observability.syslog_handler import (
    add_syslog_handler,
    syslog_tag,
)


__all__ = [
    "ContextData",
    "ObservabilityContextManager",
    "ObservabilityScope",
    "RunScope",
    "TenantScope",
    "get_correlation_id",
    "set_correlation_id",
    "get_tenant_id",
    "get_frequency",
    "clear_context",
    "LogLevel",
    "DispatchEvent",
    "create_dispatch_event",
    "LogFormatter",
    "JSONFormatter",
    "ConsoleFormatter",
    "StructuredLogger",
    "LoggerFactory",
    "initialize_logging",
    "get_logger",
    "add_syslog_handler",
    "syslog_tag",
]
