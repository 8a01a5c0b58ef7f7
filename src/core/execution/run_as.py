# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""
Run-as primitive: spawn a detached process under a tenant's identity.
"""

import os
import subprocess
import threading
from typing import Callable, Protocol, Sequence
from src.core.exceptions import PrivilegeSeparationError
from src.core.models.security import SecurityContext
from src.core.observability import get_logger

logger = get_logger(__name__)


def check_privilege_separation(context: SecurityContext, caller_uid: int) -> None:
    """Refuse identities that would run tenant code with dispatcher privilege.

    :param context: Resolved tenant context.
    :param caller_uid: Effective uid of the dispatcher process.
    :raises PrivilegeSeparationError: If the tenant uid is root or the caller's.
    """
    if context.uid == 0:
        raise PrivilegeSeparationError(context.username, "resolved uid is root")
    if context.uid == caller_uid:
        raise PrivilegeSeparationError(
            context.username,
            f"resolved uid {context.uid} equals the dispatcher's own uid",
        )


class RunAsProtocol(Protocol):
    """
    Protocol for spawning a process under another identity.
    """

    def spawn_detached(
        self,
        context: SecurityContext,
        argv: Sequence[str],
    ) -> int:
        """
        Start ``argv`` as the context's user and label without waiting on it.

        :param context: Identity and isolation label to run under
        :param argv: Command and arguments
        :returns: Process id of the spawned process
        :raises PrivilegeSeparationError: If the identity is not a tenant's
        :raises OSError: If the process cannot be started
        """
        ...

    def reap(self) -> list[int]:
        """
        Collect exited processes without waiting on running ones.

        :returns: Process ids still running
        """
        ...


class SelinuxRunAs:
    """Spawns detached processes as a tenant, confined by ``runcon``."""

    def __init__(
        self,
        runcon_path: str = "/usr/bin/runcon",
        path_env: str = "/usr/local/bin:/usr/bin:/bin",
        euid_getter: Callable[[], int] = os.geteuid,
    ) -> None:
        """Initialize the run-as primitive.

        :param runcon_path: Path of the ``runcon`` binary used to apply labels
        :param path_env: ``PATH`` given to spawned processes
        :param euid_getter: Returns the dispatcher's effective uid
        """
        self.runcon_path = runcon_path
        self.path_env = path_env
        self._euid_getter = euid_getter
        self._spawned: list[subprocess.Popen] = []
        self._lock = threading.Lock()

    def build_command(self, context: SecurityContext, argv: Sequence[str]) -> list[str]:
        """Prefix the command with ``runcon`` when the context carries a label."""
        if context.label:
            return [self.runcon_path, context.label, *argv]
        return list(argv)

    def build_env(self, context: SecurityContext) -> dict[str, str]:
        """Build a clean login-like environment for the tenant."""
        return {
            "HOME": context.home,
            "USER": context.username,
            "LOGNAME": context.username,
            "SHELL": "/bin/sh",
            "PATH": self.path_env,
        }

    def spawn_detached(
        self,
        context: SecurityContext,
        argv: Sequence[str],
    ) -> int:
        """Spawn ``argv`` in a new session as the tenant; never waited on.

        :param context: Tenant identity and label
        :param argv: Command and arguments
        :returns: Process id
        :raises PrivilegeSeparationError: If the identity is root or the caller's
        :raises OSError: If the process cannot be started
        """
        check_privilege_separation(context, self._euid_getter())
        cmd = self.build_command(context, argv)
        proc = subprocess.Popen(
            cmd,
            user=context.uid,
            group=context.gid,
            extra_groups=[],
            cwd=context.home,
            env=self.build_env(context),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            close_fds=True,
            start_new_session=True,
        )
        with self._lock:
            self._reap_locked()
            self._spawned.append(proc)
        logger.debug(f"Spawned pid={proc.pid} as uid={context.uid}: {' '.join(cmd)}")
        return proc.pid

    def _reap_locked(self) -> None:
        # poll() collects an exited child without blocking on running ones.
        self._spawned = [proc for proc in self._spawned if proc.poll() is None]

    def reap(self) -> list[int]:
        """Collect runners that have exited.

        :returns: Process ids of runners still running.
        """
        with self._lock:
            self._reap_locked()
            return [proc.pid for proc in self._spawned]
