# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Security context models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SecurityContext:
    """Identity and isolation label a tenant's processes must run under.

    :param username: Tenant login name.
    :param uid: Tenant user id.
    :param gid: Tenant primary group id.
    :param home: Tenant home directory.
    :param label: Full SELinux context, e.g.
        ``unconfined_u:system_r:openshift_t:s0:c0,c1001``; ``None`` when
        mandatory access control is disabled on the node.
    """

    username: str
    uid: int
    gid: int
    home: str
    label: Optional[str] = None

    @property
    def mcs_level(self) -> Optional[str]:
        """MLS/MCS part of the label (``s0:cA,cB``)."""
        if not self.label:
            return None
        parts = self.label.split(":", 3)
        return parts[3] if len(parts) == 4 else None
