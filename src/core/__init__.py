# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Gear cron dispatcher - runs tenant cron jobs for one frequency.

This package provides:
- Tenant, security context and run invocation models
- Explicit dispatcher configuration
- Tenant enumeration, eligibility gate and privileged launcher
- Bounded fan-out dispatcher
- Structured logging and syslog bracketing
"""

from src.core.config import DispatcherConfig, load_config
from src.core.models.tenant import Eligibility, RuntimeFormat, Tenant
from src.core.models.security import SecurityContext
from src.core.models.invocation import DispatchSummary, InvocationOutcome, RunInvocation
from src.core.execution.dispatcher import FanOutDispatcher

__all__ = [
    "DispatcherConfig",
    "load_config",
    "Eligibility",
    "RuntimeFormat",
    "Tenant",
    "SecurityContext",
    "DispatchSummary",
    "InvocationOutcome",
    "RunInvocation",
    "FanOutDispatcher",
]
