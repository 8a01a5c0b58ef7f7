# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""
System log handler for cron run bracketing lines.

Mirrors dispatcher records to the node's system log under a
per-frequency tag.
"""

import logging
import logging.handlers
from typing import Optional

SYSLOG_TAG_PREFIX = "openshift-origin-cron"


def syslog_tag(frequency: Optional[str] = None) -> str:
    """Build the syslog ident for a frequency run.

    :param frequency: Frequency class, or None for the bare tag.
    :returns: Tag such as ``openshift-origin-cron-hourly``.
    """
    if not frequency:
        return SYSLOG_TAG_PREFIX
    return f"{SYSLOG_TAG_PREFIX}-{frequency}"


def add_syslog_handler(
    logger: Optional[logging.Logger] = None,
    address: str = "/dev/log",
    facility: str = "local0",
    tag: Optional[str] = None,
    level: int = logging.INFO,
) -> Optional[logging.handlers.SysLogHandler]:
    """Add a SysLogHandler to a logger.

    Returns None if the syslog socket cannot be reached.

    :param logger: Logger to add handler to (default: root logger)
    :param address: Unix socket path, or ``host:port`` for UDP
    :param facility: Syslog facility name
    :param tag: Ident prepended to each message
    :param level: Minimum level forwarded to syslog
    :returns: The handler if added, None if syslog is unreachable
    """
    if ":" in address:
        host, port = address.rsplit(":", 1)
        target: str | tuple[str, int] = (host, int(port))
    else:
        target = address

    try:
        handler = logging.handlers.SysLogHandler(
            address=target,
            facility=logging.handlers.SysLogHandler.facility_names.get(
                facility, logging.handlers.SysLogHandler.LOG_LOCAL0
            ),
        )
    except OSError as exc:
        logging.getLogger(__name__).warning(
            "Syslog unavailable at %s: %s", address, exc
        )
        return None

    handler.ident = f"{tag or SYSLOG_TAG_PREFIX}: "
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    target_logger = logger or logging.getLogger()
    target_logger.addHandler(handler)

    return handler
