# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""
Dispatcher exceptions.
"""


class DispatchError(Exception):
    """
    Base exception for dispatch errors.
    """

    pass


class UsageError(DispatchError):
    """
    Raised when the command line is malformed.
    """

    def __init__(self, message: str, exit_code: int = 1) -> None:
        self.exit_code = exit_code
        super().__init__(message)


class ConfigError(DispatchError):
    """Raised when dispatcher configuration is invalid."""


class UnsupportedFormatError(DispatchError):
    """
    Raised when the runtime format probe yields no usable token.
    """

    def __init__(self, token: str) -> None:
        self.token = token
        super().__init__(f"Unsupported runtime format: {token!r}")


class ResolutionError(DispatchError):
    """
    Raised when a tenant's identity or isolation label cannot be resolved.
    """

    def __init__(self, tenant: str, reason: str) -> None:
        self.tenant = tenant
        self.reason = reason
        super().__init__(f"Cannot resolve security context for {tenant}: {reason}")


class LaunchError(DispatchError):
    """
    Raised when the job runner cannot be spawned for a tenant.
    """

    def __init__(self, tenant: str, reason: str) -> None:
        self.tenant = tenant
        self.reason = reason
        super().__init__(f"Failed to launch job runner for {tenant}: {reason}")


class PrivilegeSeparationError(LaunchError):
    """Raised when a spawn would run tenant code as root or as the dispatcher."""
