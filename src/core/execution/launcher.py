# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""
Privileged launcher: prepares a tenant's job directory and starts the
job runner under the tenant's own identity.
"""

import errno
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from src.core.config import DispatcherConfig
from src.core.exceptions import LaunchError, PrivilegeSeparationError
from src.core.execution.run_as import RunAsProtocol
from src.core.execution.security import SecurityContextResolver
from src.core.models.security import SecurityContext
from src.core.models.tenant import Tenant
from src.core.observability import get_logger

logger = get_logger(__name__)

EXEC_BITS = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


@dataclass(frozen=True)
class LaunchResult:
    """Outcome of a successful detached launch."""

    pid: int
    runner: str
    context: SecurityContext


def _make_executable(path: str, owner_uid: int) -> bool:
    """Add execute bits to one entry without following symlinks.

    Only regular files and directories owned by ``owner_uid`` are touched.

    :param path: Entry to update.
    :param owner_uid: Uid the entry must belong to.
    :returns: True if the mode was changed.
    """
    try:
        lst = os.lstat(path)
        if not (stat.S_ISREG(lst.st_mode) or stat.S_ISDIR(lst.st_mode)):
            return False
        fd = os.open(path, os.O_RDONLY | os.O_NOFOLLOW | os.O_NONBLOCK)
    except OSError as exc:
        if exc.errno in (errno.ELOOP, errno.ENOENT):
            return False
        raise
    try:
        st = os.fstat(fd)
        if not (stat.S_ISREG(st.st_mode) or stat.S_ISDIR(st.st_mode)):
            return False
        if st.st_uid != owner_uid:
            logger.warning(f"Skipping {path}: owned by uid {st.st_uid}, not {owner_uid}")
            return False
        mode = stat.S_IMODE(st.st_mode)
        if mode & EXEC_BITS == EXEC_BITS:
            return False
        os.fchmod(fd, mode | EXEC_BITS)
        return True
    finally:
        os.close(fd)


class PrivilegedLauncher:
    """Launches a tenant's job runner for one frequency, detached."""

    def __init__(
        self,
        config: DispatcherConfig,
        resolver: SecurityContextResolver,
        run_as: RunAsProtocol,
    ) -> None:
        """Initialize the launcher.

        :param config: Dispatcher configuration
        :param resolver: Tenant security context resolver
        :param run_as: Primitive that spawns processes as the tenant
        """
        self.config = config
        self.resolver = resolver
        self.run_as = run_as

    def normalize_permissions(self, tenant: Tenant, frequency: str) -> int:
        """Mark everything in the frequency's job directory executable.

        :param tenant: Tenant owning the job directory.
        :param frequency: Frequency class name.
        :returns: Number of entries whose mode changed.
        :raises LaunchError: If the directory leaves the tenant's home or
            cannot be updated.
        """
        jobs_dir = self.config.jobs_dir(tenant.home, frequency)
        if jobs_dir.is_symlink() or not jobs_dir.resolve().is_relative_to(
            Path(tenant.home).resolve()
        ):
            raise LaunchError(tenant.name, f"job directory {jobs_dir} escapes tenant home")

        changed = 0
        try:
            if _make_executable(str(jobs_dir), tenant.uid):
                changed += 1
            for root, dirs, files in os.walk(jobs_dir, followlinks=False):
                for name in (*dirs, *files):
                    if _make_executable(os.path.join(root, name), tenant.uid):
                        changed += 1
        except OSError as exc:
            raise LaunchError(tenant.name, f"cannot update permissions: {exc}") from exc
        return changed

    def reap(self) -> list[int]:
        """Collect runners that have exited; returns pids still running."""
        return self.run_as.reap()

    def runner_path(self, tenant: Tenant) -> Path:
        """Job runner executable for the tenant's runtime format."""
        return self.config.layout_for(tenant.runtime_format).runner_path(tenant.home)

    def launch(self, tenant: Tenant, frequency: str) -> LaunchResult:
        """Prepare and launch the job runner for an eligible tenant.

        Returns once the runner process has started; its outcome is never
        inspected.

        :param tenant: Eligible tenant.
        :param frequency: Frequency class name, passed to the runner.
        :returns: Launch result with pid and runner path.
        :raises ResolutionError: If the tenant's security context is unresolvable.
        :raises LaunchError: If permissions or spawning fail.
        """
        changed = self.normalize_permissions(tenant, frequency)
        if changed:
            logger.debug(f"Marked {changed} job entries executable")

        context = self.resolver.resolve(tenant.name)
        runner = self.runner_path(tenant)

        try:
            pid = self.run_as.spawn_detached(context, [str(runner), frequency])
        except PrivilegeSeparationError:
            raise
        except OSError as exc:
            raise LaunchError(tenant.name, f"{runner}: {exc}") from exc

        return LaunchResult(pid=pid, runner=str(runner), context=context)
