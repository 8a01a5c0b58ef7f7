# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
"""
Typed event definitions for structured logging.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from src.core.observability.context import (
    get_correlation_id,
    get_frequency,
    get_tenant_id,
)


class LogLevel(str, Enum):
    """Standard log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


DispatchEventType = Literal[
    "run_start",
    "run_end",
    "tenant_ineligible",
    "tenant_launched",
    "tenant_resolution_failed",
    "tenant_launch_failed",
    "tenant_error",
]


class DispatchEvent(BaseModel):
    """Dispatch-level log event for frequency runs and tenant pipelines."""

    model_config = ConfigDict(use_enum_values=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    correlation_id: Optional[str] = None
    level: LogLevel = LogLevel.INFO
    event: DispatchEventType
    frequency: Optional[str] = None
    tenant_id: Optional[str] = None
    runtime_format: Optional[str] = None
    eligibility: Optional[str] = None
    runner: Optional[str] = None
    pid: Optional[int] = None
    tenant_count: Optional[int] = None
    launched: Optional[int] = None
    ineligible: Optional[int] = None
    failed: Optional[int] = None
    concurrency: Optional[int] = None
    duration_ms: Optional[float] = None
    error: Optional[str] = None


def truncate(text: Optional[str], max_length: int = 200) -> Optional[str]:
    """Truncate text to max length with ellipsis.

    :param text: Text to truncate
    :type text: Optional[str]
    :param max_length: Maximum length
    :type max_length: int
    :returns: Truncated text or None
    :rtype: Optional[str]
    """
    if text is None:
        return None
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def create_dispatch_event(
    event: DispatchEventType,
    level: LogLevel = LogLevel.INFO,
    **kwargs: Any,
) -> DispatchEvent:
    """Create a dispatch event with context auto-populated.

    :param event: Event type
    :type event: DispatchEventType
    :param level: Log level
    :type level: LogLevel
    :param kwargs: Additional event fields
    :returns: DispatchEvent instance
    :rtype: DispatchEvent
    """
    if "error" in kwargs:
        kwargs["error"] = truncate(kwargs["error"])
    return DispatchEvent(
        event=event,
        level=level,
        correlation_id=kwargs.pop("correlation_id", get_correlation_id()),
        tenant_id=kwargs.pop("tenant_id", get_tenant_id()),
        frequency=kwargs.pop("frequency", get_frequency()),
        **kwargs,
    )
