# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Shared fixtures for core module tests."""

import os
from pathlib import Path
from typing import Any, Callable, Iterable, Optional
import pytest
from pytest_mock import MockerFixture
from src.core.config import DispatcherConfig
from src.core.execution.dispatcher import FanOutDispatcher
from src.core.execution.enumerator import TenantEnumerator
from src.core.execution.gate import FrequencyGate
from src.core.execution.launcher import PrivilegedLauncher
from src.core.models.security import SecurityContext
from src.core.models.tenant import RuntimeFormat, Tenant
from src.core.observability import ObservabilityContextManager

TENANT_UID_BASE = 5000


@pytest.fixture(autouse=True)
def reset_observability_context() -> Iterable[None]:
    ObservabilityContextManager.reset_instance()
    yield
    ObservabilityContextManager.reset_instance()


@pytest.fixture
def homes(tmp_path: Path) -> Path:
    base = tmp_path / "var" / "lib" / "openshift"
    base.mkdir(parents=True)
    return base


@pytest.fixture
def config() -> DispatcherConfig:
    return DispatcherConfig(
        runtime_format=RuntimeFormat.V2,
        syslog_enabled=False,
    )


@pytest.fixture
def make_tenant(homes: Path, config: DispatcherConfig) -> Callable[..., Tenant]:
    """
    Factory creating a tenant home on disk.

    Tenants are owned by the test user so permission changes apply to them.
    """

    def factory(
        name: str,
        runtime_format: RuntimeFormat = RuntimeFormat.V2,
        enabled: bool = True,
        jobs: Optional[dict[str, list[str]]] = None,
    ) -> Tenant:
        home = homes / name
        runtime = config.runtime_path(home, runtime_format)
        runtime.mkdir(parents=True)
        if enabled:
            marker = config.marker_path(home, runtime_format)
            marker.parent.mkdir(parents=True, exist_ok=True)
            marker.touch()
        for frequency, files in (jobs or {}).items():
            jobs_dir = config.jobs_dir(home, frequency)
            jobs_dir.mkdir(parents=True, exist_ok=True)
            for file_name in files:
                job = jobs_dir / file_name
                job.write_text("#!/bin/sh\necho tick\n")
                job.chmod(0o644)
        return Tenant(
            name=name,
            uid=os.getuid(),
            gid=os.getgid(),
            home=home,
            runtime_format=runtime_format,
        )

    return factory


@pytest.fixture
def security_context_for() -> Callable[[str], SecurityContext]:
    def factory(name: str) -> SecurityContext:
        uid = TENANT_UID_BASE + sum(ord(c) for c in name)
        return SecurityContext(
            username=name,
            uid=uid,
            gid=uid,
            home=f"/var/lib/openshift/{name}",
            label=f"unconfined_u:system_r:openshift_t:s0:c0,c{uid % 1024}",
        )

    return factory


@pytest.fixture
def mock_resolver(mocker: MockerFixture, security_context_for: Any) -> Any:
    resolver = mocker.MagicMock()
    resolver.resolve = mocker.MagicMock(side_effect=security_context_for)
    return resolver


@pytest.fixture
def mock_run_as(mocker: MockerFixture) -> Any:
    run_as = mocker.MagicMock()
    run_as.spawn_detached = mocker.MagicMock(return_value=4242)
    run_as.reap = mocker.MagicMock(return_value=[])
    return run_as


@pytest.fixture
def launcher(config: DispatcherConfig, mock_resolver: Any, mock_run_as: Any) -> PrivilegedLauncher:
    return PrivilegedLauncher(config=config, resolver=mock_resolver, run_as=mock_run_as)


@pytest.fixture
def gate(config: DispatcherConfig) -> FrequencyGate:
    return FrequencyGate(config)


@pytest.fixture
def dispatcher(
    config: DispatcherConfig,
    gate: FrequencyGate,
    launcher: PrivilegedLauncher,
) -> FanOutDispatcher:
    return FanOutDispatcher(
        config=config,
        gate=gate,
        launcher=launcher,
        enumerator=TenantEnumerator(config, identity_source=list),
    )
