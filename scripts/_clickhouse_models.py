"""Data structures shared by the ClickHouse Cloud provisioning helpers."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

API_BASE = "https://api.clickhouse.cloud/v1"
CONSOLE_BASE = "https://clickhouse.cloud"
DEFAULT_ENV_FILE = Path(".env")

DEFAULT_PROVIDER = "aws"
DEFAULT_REGION = "us-east-1"
DEFAULT_IDLE_TIMEOUT_MINUTES = 5
DEFAULT_SERVICE_PREFIX = "railway"

DEFAULT_USER = "default"
DEFAULT_DATABASE = "default"
DEFAULT_HTTPS_PORT = 8443
DEFAULT_NATIVE_PORT = 9440

HTTPS_PROTOCOL = "https"
NATIVE_SECURE_PROTOCOL = "nativesecure"


@dataclass(frozen=True, slots=True)
class CloudCredentials:
    """API key pair and organization for the ClickHouse Cloud API."""

    key_id: str
    key_secret: str
    org_id: str


@dataclass(frozen=True, slots=True)
class IpAccessEntry:
    """Single entry of a service IP access list."""

    source: str
    description: str

    def to_payload(self) -> dict[str, str]:
        return {"source": self.source, "description": self.description}


# Development default: the service accepts connections from any address.
ALLOW_ALL = IpAccessEntry(source="0.0.0.0/0", description="Allow all (development)")


@dataclass(frozen=True, slots=True)
class ServiceRequest:
    """Body of the service creation request."""

    name: str
    provider: str = DEFAULT_PROVIDER
    region: str = DEFAULT_REGION
    idle_scaling: bool = True
    idle_timeout_minutes: int = DEFAULT_IDLE_TIMEOUT_MINUTES
    ip_access_list: tuple[IpAccessEntry, ...] = (ALLOW_ALL,)

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON body expected by the create endpoint.

        Examples
        --------
        >>> ServiceRequest(name="railway-1").to_payload()["idleScaling"]
        True
        """
        return {
            "name": self.name,
            "provider": self.provider,
            "region": self.region,
            "idleScaling": self.idle_scaling,
            "idleTimeoutMinutes": self.idle_timeout_minutes,
            "ipAccessList": [entry.to_payload() for entry in self.ip_access_list],
        }


def build_service_name(
    prefix: str = DEFAULT_SERVICE_PREFIX,
    clock: Callable[[], float] = time.time,
) -> str:
    """Return a unique service name derived from the current time.

    Examples
    --------
    >>> build_service_name("railway", clock=lambda: 1700000000.123)
    'railway-1700000000123'
    """
    return f"{prefix}-{int(clock() * 1000)}"


@dataclass(frozen=True, slots=True)
class Endpoint:
    """Protocol-tagged address exposed by a service."""

    protocol: str
    host: str
    port: int | None = None


@dataclass(frozen=True, slots=True)
class ServiceRecord:
    """Remote service as reported by the create endpoint."""

    service_id: str
    name: str
    endpoints: tuple[Endpoint, ...] = ()
    state: str | None = None

    def find_endpoint(self, protocol: str) -> Endpoint | None:
        """Return the first endpoint advertising ``protocol``."""
        return next((e for e in self.endpoints if e.protocol == protocol), None)


@dataclass(frozen=True, slots=True)
class CreatedService:
    """Service record paired with the password returned once at creation."""

    service: ServiceRecord
    password: str


@dataclass(frozen=True, slots=True)
class ProvisionResult:
    """Connection parameters persisted to the env file."""

    host: str
    password: str
    https_port: int
    native_port: int
    service_id: str
    user: str = DEFAULT_USER
    database: str = DEFAULT_DATABASE

    @property
    def console_url(self) -> str:
        return f"{CONSOLE_BASE}/services/{self.service_id}"


@dataclass(frozen=True, slots=True)
class PollPolicy:
    """Fixed-interval polling policy for service readiness.

    Attributes
    ----------
    max_attempts
        Number of status checks before giving up.
    delay_seconds
        Pause between consecutive status checks.
    sleep
        Callable used to pause; tests substitute a recorder.
    ready_states
        States that end polling successfully.
    failed_states
        States that end polling with a failure.
    """

    max_attempts: int = 60
    delay_seconds: float = 5.0
    sleep: Callable[[float], None] = time.sleep
    ready_states: frozenset[str] = field(
        default_factory=lambda: frozenset({"running", "idle"})
    )
    failed_states: frozenset[str] = field(
        default_factory=lambda: frozenset({"stopped", "stopping"})
    )


@dataclass(frozen=True, slots=True)
class ProvisionConfig:
    """Resolved configuration for one provisioning run.

    ``idle_timeout_minutes`` holds the raw setting; it is only parsed once the
    guard has decided a service must be created.
    """

    env_file: Path
    force: bool
    host_configured: bool
    credentials: CloudCredentials | None
    missing_credentials: tuple[str, ...]
    api_base: str = API_BASE
    provider: str = DEFAULT_PROVIDER
    region: str = DEFAULT_REGION
    idle_timeout_minutes: str = str(DEFAULT_IDLE_TIMEOUT_MINUTES)
    service_prefix: str = DEFAULT_SERVICE_PREFIX


__all__ = [
    "ALLOW_ALL",
    "API_BASE",
    "CloudCredentials",
    "CreatedService",
    "DEFAULT_ENV_FILE",
    "Endpoint",
    "IpAccessEntry",
    "PollPolicy",
    "ProvisionConfig",
    "ProvisionResult",
    "ServiceRecord",
    "ServiceRequest",
    "build_service_name",
]
