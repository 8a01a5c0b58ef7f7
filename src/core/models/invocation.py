# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Run invocation models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from src.core.models.tenant import Eligibility


def _utcnow() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


class InvocationOutcome(str, Enum):
    """Outcome of one tenant pipeline."""

    PENDING = "pending"
    INELIGIBLE = "ineligible"
    RESOLUTION_FAILED = "resolution_failed"
    LAUNCH_FAILED = "launch_failed"
    LAUNCHED = "launched"
    ERROR = "error"


class RunInvocation(BaseModel):
    """One tenant pipeline attempt for one frequency.

    Lives only for the duration of a single CLI call and is never persisted.
    """

    model_config = ConfigDict(use_enum_values=True)

    tenant: str
    frequency: str
    started_at: datetime = Field(default_factory=_utcnow)
    finished_at: Optional[datetime] = None
    eligibility: Optional[Eligibility] = None
    outcome: InvocationOutcome = InvocationOutcome.PENDING
    runner: Optional[str] = None
    pid: Optional[int] = None
    error: Optional[str] = None

    def gated(self, eligibility: Eligibility) -> None:
        """Record the gate result.

        An ineligible tenant is terminal: absence of work is not a failure.

        :param eligibility: Gate result.
        :type eligibility: Eligibility
        """
        self.eligibility = eligibility
        if eligibility != Eligibility.ELIGIBLE:
            self.outcome = InvocationOutcome.INELIGIBLE
            self.finished_at = _utcnow()

    def launched(self, pid: int, runner: str) -> None:
        """Record a successful detached launch.

        :param pid: Process id of the job runner.
        :param runner: Path of the job runner executable.
        """
        self.outcome = InvocationOutcome.LAUNCHED
        self.pid = pid
        self.runner = runner
        self.finished_at = _utcnow()

    def fail(self, outcome: InvocationOutcome, error: str) -> None:
        """Record a per-tenant failure.

        :param outcome: One of the failure outcomes.
        :param error: Error description.
        """
        self.outcome = outcome
        self.error = error
        self.finished_at = _utcnow()

    @property
    def is_terminal(self) -> bool:
        """Check if the pipeline reached a terminal state."""
        return self.outcome != InvocationOutcome.PENDING

    @property
    def duration_seconds(self) -> Optional[float]:
        """Calculate pipeline duration in seconds."""
        if not self.finished_at:
            return None
        return (self.finished_at - self.started_at).total_seconds()


class DispatchSummary(BaseModel):
    """Per-outcome counts for one frequency run."""

    frequency: str
    attempted: int = 0
    launched: int = 0
    ineligible: int = 0
    failed: int = 0

    @classmethod
    def from_invocations(
        cls, frequency: str, invocations: list[RunInvocation]
    ) -> "DispatchSummary":
        """Aggregate terminal invocations into counts.

        :param frequency: Frequency class name.
        :param invocations: Invocations of the run.
        :returns: Summary instance.
        """
        summary = cls(frequency=frequency, attempted=len(invocations))
        for invocation in invocations:
            if invocation.outcome == InvocationOutcome.LAUNCHED:
                summary.launched += 1
            elif invocation.outcome == InvocationOutcome.INELIGIBLE:
                summary.ineligible += 1
            else:
                summary.failed += 1
        return summary
