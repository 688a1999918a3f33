"""Exception hierarchy for the ClickHouse Cloud provisioning helpers.

Every failure raised by the guard, the provisioning flow, and the env-file
writer derives from :class:`ClickHouseProvisionError` so the CLI entrypoint can
catch a single base error, report it, and exit non-zero.

Exceptions
----------
ClickHouseProvisionError
PreflightError
ConfigurationError
RequestError
LifecycleFailure
ProvisionTimeoutError
EndpointResolutionError
PersistenceError

Examples
--------
>>> str(LifecycleFailure("stopped"))
'Service provisioning failed: state is stopped'
"""

from __future__ import annotations

from collections.abc import Sequence


class ClickHouseProvisionError(Exception):
    """Base error for ClickHouse Cloud provisioning."""


class PreflightError(ClickHouseProvisionError):
    """Raised when required credential inputs are missing.

    Parameters
    ----------
    missing
        Names of the environment variables that were absent or empty.

    Examples
    --------
    >>> PreflightError(["CLICKHOUSE_ORG_ID"]).missing
    ('CLICKHOUSE_ORG_ID',)
    """

    def __init__(self, missing: Sequence[str]) -> None:
        self.missing = tuple(missing)
        names = ", ".join(self.missing)
        super().__init__(f"Missing required environment variables: {names}")


class ConfigurationError(ClickHouseProvisionError):
    """Raised when an optional setting cannot be interpreted."""


class RequestError(ClickHouseProvisionError):
    """Raised when a ClickHouse Cloud API call fails.

    ``status_code`` is ``None`` when the request never produced a response
    (connection refused, DNS failure, timeout).
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class LifecycleFailure(ClickHouseProvisionError):
    """Raised when the service enters a terminal non-ready state."""

    def __init__(self, state: str) -> None:
        self.state = state
        super().__init__(f"Service provisioning failed: state is {state}")


class ProvisionTimeoutError(ClickHouseProvisionError):
    """Raised when the service does not become ready within the poll budget."""


class EndpointResolutionError(ClickHouseProvisionError):
    """Raised when no usable endpoint is reported for the service."""


class PersistenceError(ClickHouseProvisionError):
    """Raised when the env file cannot be written."""


__all__ = [
    "ClickHouseProvisionError",
    "ConfigurationError",
    "EndpointResolutionError",
    "LifecycleFailure",
    "PersistenceError",
    "PreflightError",
    "ProvisionTimeoutError",
    "RequestError",
]
