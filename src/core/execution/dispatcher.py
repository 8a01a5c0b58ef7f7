# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Bounded fan-out of tenant pipelines for one frequency run."""

import contextvars
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterable
from src.core.config import DispatcherConfig
from src.core.exceptions import LaunchError, ResolutionError
from src.core.execution.enumerator import TenantEnumerator
from src.core.execution.gate import FrequencyGate
from src.core.execution.launcher import PrivilegedLauncher
from src.core.models.invocation import DispatchSummary, InvocationOutcome, RunInvocation
from src.core.models.tenant import RuntimeFormat, Tenant
from src.core.observability import (
    LogLevel,
    RunScope,
    TenantScope,
    create_dispatch_event,
    get_logger,
)

logger = get_logger(__name__)


class FanOutDispatcher:
    """Applies gate and launcher to every tenant with bounded concurrency.

    Each worker slot carries one tenant pipeline until its runner has been
    spawned; the runners themselves are detached and never joined, so jobs
    may still be running when :meth:`run` returns.

    Overlapping invocations for the same frequency are not serialised: a
    run that outlasts the next tick can launch a tenant's jobs twice.
    """

    def __init__(
        self,
        config: DispatcherConfig,
        gate: FrequencyGate,
        launcher: PrivilegedLauncher,
        enumerator: TenantEnumerator,
    ) -> None:
        """Initialize the dispatcher.

        :param config: Dispatcher configuration (``concurrency`` sizes the pool)
        :param gate: Eligibility gate
        :param launcher: Privileged launcher
        :param enumerator: Tenant enumerator, used for single-tenant lookups
        """
        self.config = config
        self.gate = gate
        self.launcher = launcher
        self.enumerator = enumerator

    def run_tenant(self, tenant: Tenant, frequency: str) -> RunInvocation:
        """Run the gate and launcher pipeline for one tenant.

        Never raises for per-tenant failures; they are logged and recorded on
        the returned invocation.

        :param tenant: Tenant to process.
        :param frequency: Frequency class name.
        :returns: Terminal invocation record.
        """
        invocation = RunInvocation(tenant=tenant.name, frequency=frequency)

        with TenantScope(tenant.name):
            try:
                eligibility = self.gate.evaluate(tenant.home, tenant.runtime_format, frequency)
                invocation.gated(eligibility)
                if not eligibility.is_eligible:
                    logger.event(
                        create_dispatch_event(
                            "tenant_ineligible",
                            level=LogLevel.DEBUG,
                            eligibility=eligibility.value,
                        )
                    )
                    return invocation

                result = self.launcher.launch(tenant, frequency)
                invocation.launched(result.pid, result.runner)
                logger.event(
                    create_dispatch_event(
                        "tenant_launched",
                        runner=result.runner,
                        pid=result.pid,
                        runtime_format=RuntimeFormat(tenant.runtime_format).value,
                    )
                )

            except ResolutionError as e:
                invocation.fail(InvocationOutcome.RESOLUTION_FAILED, str(e))
                logger.event(
                    create_dispatch_event(
                        "tenant_resolution_failed", level=LogLevel.ERROR, error=str(e)
                    )
                )

            except LaunchError as e:
                invocation.fail(InvocationOutcome.LAUNCH_FAILED, str(e))
                logger.event(
                    create_dispatch_event(
                        "tenant_launch_failed", level=LogLevel.ERROR, error=str(e)
                    )
                )

            except Exception as e:
                invocation.fail(InvocationOutcome.ERROR, str(e))
                logger.error(f"Unexpected error in pipeline for {tenant.name}: {e}", exc_info=True)
                logger.event(
                    create_dispatch_event("tenant_error", level=LogLevel.ERROR, error=str(e))
                )

        return invocation

    def dispatch(self, frequency: str, tenants: Iterable[Tenant]) -> list[RunInvocation]:
        """Fan the pipeline out over a fixed-size worker pool and join it.

        :param frequency: Frequency class name.
        :param tenants: Tenants to attempt; duplicates are attempted once.
        :returns: One terminal invocation per distinct tenant.
        """
        unique: dict[str, Tenant] = {}
        for tenant in tenants:
            unique.setdefault(tenant.name, tenant)

        invocations: list[RunInvocation] = []
        if not unique:
            return invocations

        with ThreadPoolExecutor(
            max_workers=self.config.concurrency,
            thread_name_prefix="cron-dispatch",
        ) as pool:
            futures = [
                pool.submit(contextvars.copy_context().run, self.run_tenant, tenant, frequency)
                for tenant in unique.values()
            ]
            for future in as_completed(futures):
                invocations.append(future.result())

        running = self.launcher.reap()
        logger.debug(f"{len(running)} job runner(s) still running after fan-out")

        return invocations

    def run(self, frequency: str, tenants: Iterable[Tenant]) -> DispatchSummary:
        """Run one frequency across tenants, bracketed by START/END log lines.

        :param frequency: Frequency class name.
        :param tenants: Enumerated tenants.
        :returns: Per-outcome counts.
        """
        tenants = list(tenants)
        start_time = time.perf_counter()
        summary = DispatchSummary(frequency=frequency)

        with RunScope(frequency):
            logger.info(f"START {frequency} cron run")
            logger.event(
                create_dispatch_event(
                    "run_start",
                    tenant_count=len(tenants),
                    concurrency=self.config.concurrency,
                )
            )
            try:
                invocations = self.dispatch(frequency, tenants)
                summary = DispatchSummary.from_invocations(frequency, invocations)
            finally:
                duration_ms = (time.perf_counter() - start_time) * 1000
                logger.event(
                    create_dispatch_event(
                        "run_end",
                        tenant_count=summary.attempted,
                        launched=summary.launched,
                        ineligible=summary.ineligible,
                        failed=summary.failed,
                        duration_ms=duration_ms,
                    )
                )
                logger.info(f"END {frequency} cron run")

        return summary

    def run_user(
        self,
        name: str,
        frequency: str,
        runtime_format: RuntimeFormat,
    ) -> RunInvocation:
        """Run the pipeline for a single tenant looked up by name.

        :param name: Tenant login name.
        :param frequency: Frequency class name.
        :param runtime_format: Format detected for this invocation.
        :returns: Terminal invocation record.
        """
        with RunScope(frequency):
            try:
                tenant = self.enumerator.lookup(name, runtime_format)
            except KeyError:
                invocation = RunInvocation(tenant=name, frequency=frequency)
                error = str(ResolutionError(name, "no such user"))
                invocation.fail(InvocationOutcome.RESOLUTION_FAILED, error)
                logger.event(
                    create_dispatch_event(
                        "tenant_resolution_failed",
                        level=LogLevel.ERROR,
                        tenant_id=name,
                        error=error,
                    )
                )
                return invocation
            return self.run_tenant(tenant, frequency)
