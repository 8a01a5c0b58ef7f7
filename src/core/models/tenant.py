# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Tenant and runtime layout models."""

import re
from enum import Enum
from pathlib import Path
from pydantic import BaseModel, ConfigDict

_FREQUENCY_PATTERN = re.compile(r"[A-Za-z0-9_.-]+")


class RuntimeFormat(str, Enum):
    """Cartridge format generation installed on the node."""

    V1 = "v1"
    V2 = "v2"


class Eligibility(str, Enum):
    """Result of gating one tenant for one frequency."""

    ELIGIBLE = "eligible"
    DISABLED = "disabled"
    NO_JOB_DIR = "no_job_dir"
    EMPTY_JOB_DIR = "empty_job_dir"

    @property
    def is_eligible(self) -> bool:
        """Check if the tenant has work to launch."""
        return self is Eligibility.ELIGIBLE


class RuntimeLayout(BaseModel):
    """Filesystem layout of the cron runtime for one format generation.

    :param runtime_dir: Directory name of the cron runtime under the tenant home.
    :param runner: Job runner path; may reference ``{home}``.
    """

    model_config = ConfigDict(frozen=True)

    runtime_dir: str
    runner: str

    def runner_path(self, home: Path | str) -> Path:
        """Render the job runner path for a tenant home."""
        return Path(self.runner.format(home=str(home)))


class Tenant(BaseModel):
    """A tenant account as read from the identity directory.

    Instances are read at dispatch time and never cached across runs.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    uid: int
    gid: int
    home: Path
    runtime_format: RuntimeFormat


def is_valid_frequency(frequency: str) -> bool:
    """Check that a frequency name is a single, plain path component.

    :param frequency: Frequency class name, e.g. ``hourly``.
    :returns: True if the name is safe to join under a tenant's cron dir.
    """
    if frequency in (".", ".."):
        return False
    return bool(_FREQUENCY_PATTERN.fullmatch(frequency))
