# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Eligibility gate for one tenant and one frequency."""

import os
from pathlib import Path
from src.core.config import DispatcherConfig
from src.core.models.tenant import Eligibility, RuntimeFormat


class FrequencyGate:
    """Decides whether a tenant has cron work for a frequency.

    Reads only the tenant's own marker file and job directory, fresh on
    every call.
    """

    def __init__(self, config: DispatcherConfig) -> None:
        self.config = config

    def evaluate(
        self,
        home: Path | str,
        runtime_format: RuntimeFormat,
        frequency: str,
    ) -> Eligibility:
        """Evaluate the gate, short-circuiting on the first failed check.

        :param home: Tenant home directory.
        :param runtime_format: Runtime format of the node.
        :param frequency: Frequency class name.
        :returns: ``Eligibility.ELIGIBLE`` or the first unmet condition.
        """
        if not self.config.marker_path(home, runtime_format).exists():
            return Eligibility.DISABLED

        jobs_dir = self.config.jobs_dir(home, frequency)
        if not jobs_dir.is_dir():
            return Eligibility.NO_JOB_DIR

        with os.scandir(jobs_dir) as entries:
            if next(entries, None) is None:
                return Eligibility.EMPTY_JOB_DIR

        return Eligibility.ELIGIBLE

    def is_eligible(
        self,
        home: Path | str,
        runtime_format: RuntimeFormat,
        frequency: str,
    ) -> bool:
        return self.evaluate(home, runtime_format, frequency).is_eligible
