# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Models for the cron dispatcher."""

from src.core.models.tenant import (
    Eligibility,
    RuntimeFormat,
    RuntimeLayout,
    Tenant,
    is_valid_frequency,
)
from src.core.models.security import SecurityContext
from src.core.models.invocation import DispatchSummary, InvocationOutcome, RunInvocation

__all__ = [
    "Eligibility",
    "RuntimeFormat",
    "RuntimeLayout",
    "Tenant",
    "is_valid_frequency",
    "SecurityContext",
    "DispatchSummary",
    "InvocationOutcome",
    "RunInvocation",
]
