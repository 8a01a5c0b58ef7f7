# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""
Security context resolution for tenant accounts.
"""

import pwd
import subprocess
from typing import Callable, Optional
from src.core.config import DispatcherConfig
from src.core.exceptions import ResolutionError
from src.core.models.security import SecurityContext
from src.core.observability import get_logger

logger = get_logger(__name__)

MCS_SET_SIZE = 1023
MAX_MCS_UID = 523776


def mcs_level_for_uid(uid: int) -> str:
    """Compute the MCS category pair assigned to a uid.

    Pairs ``cA,cB`` are handed out tier by tier over a set of 1024
    categories, which covers uids up to 523776.

    :param uid: Tenant user id.
    :returns: Level such as ``s0:c0,c500``.
    :raises ValueError: If the uid is outside the allocatable range.
    """
    if uid < 0 or uid > MAX_MCS_UID:
        raise ValueError(f"uid {uid} outside MCS range 0..{MAX_MCS_UID}")
    tier = MCS_SET_SIZE
    ordinal = uid
    while ordinal > tier:
        ordinal -= tier
        tier -= 1
    tier = MCS_SET_SIZE - tier
    return f"s0:c{tier},c{ordinal + tier}"


class SecurityContextResolver:
    """Resolves a tenant's OS identity and SELinux label on demand."""

    def __init__(
        self,
        config: DispatcherConfig,
        passwd_lookup: Optional[Callable[[str], pwd.struct_passwd]] = None,
    ) -> None:
        """Initialize the resolver.

        :param config: Dispatcher configuration
        :param passwd_lookup: Login name to passwd entry, defaults to ``pwd.getpwnam``
        """
        self.config = config
        self._passwd_lookup = passwd_lookup or pwd.getpwnam

    def resolve(self, tenant: str) -> SecurityContext:
        """Resolve the security context for one tenant.

        :param tenant: Tenant login name.
        :returns: Identity and label for the tenant.
        :raises ResolutionError: If the account or its label cannot be resolved.
        """
        try:
            entry = self._passwd_lookup(tenant)
        except KeyError as exc:
            raise ResolutionError(tenant, "no such user") from exc

        label = None
        if self.config.selinux_enabled:
            level = self._mcs_level(tenant, entry.pw_uid)
            label = ":".join(
                (
                    self.config.selinux_user,
                    self.config.selinux_role,
                    self.config.selinux_type,
                    level,
                )
            )

        return SecurityContext(
            username=entry.pw_name,
            uid=entry.pw_uid,
            gid=entry.pw_gid,
            home=entry.pw_dir,
            label=label,
        )

    def _mcs_level(self, tenant: str, uid: int) -> str:
        """
        Get the MCS level from the configured command or the uid allocation.
        """
        command = self.config.mcs_level_command
        if not command:
            try:
                return mcs_level_for_uid(uid)
            except ValueError as exc:
                raise ResolutionError(tenant, str(exc)) from exc

        try:
            completed = subprocess.run(
                [*command, str(uid)],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=30,
                check=True,
                text=True,
            )
        except subprocess.CalledProcessError as exc:
            raise ResolutionError(tenant, (exc.stderr or str(exc)).strip()) from exc
        except (OSError, subprocess.SubprocessError) as exc:
            raise ResolutionError(tenant, str(exc)) from exc

        level = completed.stdout.strip()
        if not level:
            raise ResolutionError(tenant, f"{command[0]} returned no MCS level")
        return level
