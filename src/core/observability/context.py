# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
"""
Dispatch context carried by every log record of a run.

Each frequency run gets a correlation id; each tenant pipeline adds the
tenant name. Values live in a ContextVar so concurrent pipelines never
see each other's tenant.
"""

from __future__ import annotations
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass, fields, replace
from typing import Any, Optional


@dataclass(frozen=True)
class ContextData:
    """
    Immutable snapshot of the dispatch context.
    """

    correlation_id: Optional[str] = None
    tenant_id: Optional[str] = None
    frequency: Optional[str] = None

    def to_dict(self) -> dict[str, str]:
        """Non-None fields, for log records."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


class ObservabilityContextManager:
    """
    Process-wide holder of the dispatch context variable.
    """

    _instance: Optional["ObservabilityContextManager"] = None

    def __init__(self) -> None:
        self._var: ContextVar[ContextData] = ContextVar(
            "dispatch_context", default=ContextData()
        )

    @classmethod
    def instance(cls) -> "ObservabilityContextManager":
        """Get the shared manager, creating it on first use."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Drop the shared manager (for testing only)."""
        cls._instance = None

    @property
    def current(self) -> ContextData:
        return self._var.get()

    def update(self, **values: Any) -> Token:
        """Overlay values on the current context, returning a reset token."""
        return self._var.set(replace(self._var.get(), **values))

    def restore(self, token: Token) -> None:
        self._var.reset(token)

    def get_all(self) -> dict[str, str]:
        """Get all context values as dictionary."""
        return self.current.to_dict()

    def clear(self) -> None:
        self._var.set(ContextData())


class ObservabilityScope:
    """
    Context manager that sets context values for the enclosed block.
    """

    def __init__(
        self,
        correlation_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
        frequency: Optional[str] = None,
        auto_correlation_id: bool = False,
    ) -> None:
        """Initialize scope with context values.

        :param correlation_id: Correlation ID to set
        :param tenant_id: Tenant to set
        :param frequency: Frequency class to set
        :param auto_correlation_id: Generate correlation_id if not provided
        """
        if correlation_id is None and auto_correlation_id:
            correlation_id = str(uuid.uuid4())
        self._updates = {
            key: value
            for key, value in (
                ("correlation_id", correlation_id),
                ("tenant_id", tenant_id),
                ("frequency", frequency),
            )
            if value is not None
        }
        self._token: Optional[Token] = None

    def __enter__(self) -> "ObservabilityScope":
        if self._updates:
            self._token = ObservabilityContextManager.instance().update(**self._updates)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            ObservabilityContextManager.instance().restore(self._token)
            self._token = None


class RunScope(ObservabilityScope):
    """
    Scope for one frequency run; always carries a correlation ID.
    """

    def __init__(self, frequency: str) -> None:
        super().__init__(frequency=frequency, auto_correlation_id=True)


class TenantScope(ObservabilityScope):
    """
    Scope for one tenant pipeline.
    """

    def __init__(self, tenant_id: str) -> None:
        super().__init__(tenant_id=tenant_id)


def get_correlation_id() -> Optional[str]:
    return ObservabilityContextManager.instance().current.correlation_id


def set_correlation_id(value: Optional[str] = None) -> str:
    """Set the correlation ID, generating one if not given."""
    cid = value or str(uuid.uuid4())
    ObservabilityContextManager.instance().update(correlation_id=cid)
    return cid


def get_tenant_id() -> Optional[str]:
    return ObservabilityContextManager.instance().current.tenant_id


def get_frequency() -> Optional[str]:
    return ObservabilityContextManager.instance().current.frequency


def clear_context() -> None:
    """Clear all context."""
    ObservabilityContextManager.instance().clear()
