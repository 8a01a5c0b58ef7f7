# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Execution layer for dispatching tenant cron jobs."""

from src.core.execution.enumerator import (
    TenantEnumerator,
    probe_runtime_format,
    resolve_runtime_format,
)
from src.core.execution.gate import FrequencyGate
from src.core.execution.security import SecurityContextResolver, mcs_level_for_uid
from src.core.execution.run_as import RunAsProtocol, SelinuxRunAs, check_privilege_separation
from src.core.execution.launcher import LaunchResult, PrivilegedLauncher
from src.core.execution.dispatcher import FanOutDispatcher

__all__ = [
    "TenantEnumerator",
    "probe_runtime_format",
    "resolve_runtime_format",
    "FrequencyGate",
    "SecurityContextResolver",
    "mcs_level_for_uid",
    "RunAsProtocol",
    "SelinuxRunAs",
    "check_privilege_separation",
    "LaunchResult",
    "PrivilegedLauncher",
    "FanOutDispatcher",
]
