# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""
Tenant enumeration and runtime format detection.
"""

import pwd
import subprocess
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence
from src.core.config import DispatcherConfig
from src.core.exceptions import UnsupportedFormatError
from src.core.models.tenant import RuntimeFormat, Tenant
from src.core.observability import get_logger

logger = get_logger(__name__)

IdentitySource = Callable[[], Iterable[pwd.struct_passwd]]


def probe_runtime_format(command: Sequence[str], timeout: float = 30) -> RuntimeFormat:
    """Ask the node which cartridge format generation it runs.

    :param command: Probe command; its stdout is a single token.
    :param timeout: Seconds before the probe is abandoned.
    :returns: Detected runtime format.
    :raises UnsupportedFormatError: If the probe fails or prints an unknown token.
    """
    try:
        completed = subprocess.run(
            list(command),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            timeout=timeout,
            check=True,
            text=True,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        raise UnsupportedFormatError(f"probe {command[0]} failed: {exc}") from exc

    token = completed.stdout.strip()
    try:
        runtime_format = RuntimeFormat(token)
    except ValueError as exc:
        raise UnsupportedFormatError(token) from exc
    logger.debug(f"Runtime format probe returned {runtime_format.value}")
    return runtime_format


def resolve_runtime_format(config: DispatcherConfig) -> RuntimeFormat:
    """Use the configured format, probing only when none is configured."""
    if config.runtime_format is not None:
        return RuntimeFormat(config.runtime_format)
    return probe_runtime_format(config.format_probe_command)


class TenantEnumerator:
    """Lists tenant accounts that carry a cron runtime of the node's format."""

    def __init__(
        self,
        config: DispatcherConfig,
        identity_source: Optional[IdentitySource] = None,
    ) -> None:
        """Initialize the enumerator.

        :param config: Dispatcher configuration
        :param identity_source: Callable returning passwd entries, defaults to
            the system identity directory
        """
        self.config = config
        self._identity_source = identity_source or pwd.getpwall

    def list_tenants(self, runtime_format: RuntimeFormat) -> list[Tenant]:
        """Enumerate tenants compatible with the runtime format.

        An unreadable identity directory yields an empty list rather than an
        error; the run then simply has nothing to dispatch.

        :param runtime_format: Format detected for this invocation.
        :returns: Tenants in identity-directory order.
        """
        try:
            entries = list(self._identity_source())
        except (OSError, KeyError) as exc:
            logger.warning(f"Identity directory unreadable, no tenants enumerated: {exc}")
            return []

        tenants: list[Tenant] = []
        for entry in entries:
            if entry.pw_gecos != self.config.tenant_marker:
                continue
            if not self.config.runtime_path(entry.pw_dir, runtime_format).is_dir():
                continue
            tenants.append(
                Tenant(
                    name=entry.pw_name,
                    uid=entry.pw_uid,
                    gid=entry.pw_gid,
                    home=Path(entry.pw_dir),
                    runtime_format=runtime_format,
                )
            )

        logger.info(
            f"Enumerated {len(tenants)} tenant(s) with "
            f"{runtime_format.value} cron runtime"
        )
        return tenants

    def lookup(self, name: str, runtime_format: RuntimeFormat) -> Tenant:
        """Look a single tenant up by login name.

        :param name: Tenant login name.
        :param runtime_format: Format detected for this invocation.
        :returns: The tenant.
        :raises KeyError: If no such account exists.
        """
        entry = pwd.getpwnam(name)
        return Tenant(
            name=entry.pw_name,
            uid=entry.pw_uid,
            gid=entry.pw_gid,
            home=Path(entry.pw_dir),
            runtime_format=runtime_format,
        )
