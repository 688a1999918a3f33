"""Create a ClickHouse Cloud service and wait until it accepts connections.

This module drives the provisioning sequence once the guard has decided a run
is needed (see ``scripts/provision_clickhouse.py``): create the service, poll
its lifecycle state on a fixed interval, and derive the connection parameters
to persist.

Outputs
-------
The flow returns a :class:`ProvisionResult`. The service password is only
available from the create response, so it is captured there and never
re-fetched. Endpoints are likewise taken from the create response.

Examples
--------
Provision with a prepared client:

>>> with ClickHouseCloudClient(config.credentials) as client:
...     result = provision_service(client, build_service_request(config))

Side Effects
------------
A remote service is created and left running. Failures do not delete it.
"""

from __future__ import annotations

import logging

from scripts._clickhouse_api import ClickHouseCloudClient
from scripts._clickhouse_errors import (
    ConfigurationError,
    EndpointResolutionError,
    LifecycleFailure,
    ProvisionTimeoutError,
)
from scripts._clickhouse_models import (
    CONSOLE_BASE,
    DEFAULT_HTTPS_PORT,
    DEFAULT_NATIVE_PORT,
    HTTPS_PROTOCOL,
    NATIVE_SECURE_PROTOCOL,
    CreatedService,
    PollPolicy,
    ProvisionConfig,
    ProvisionResult,
    ServiceRequest,
    build_service_name,
)

logger = logging.getLogger(__name__)


def _parse_idle_timeout(value: str) -> int:
    try:
        minutes = int(value)
    except ValueError as exc:
        msg = f"CLICKHOUSE_IDLE_TIMEOUT_MINUTES must be an integer, got {value!r}"
        raise ConfigurationError(msg) from exc
    if minutes <= 0:
        msg = f"CLICKHOUSE_IDLE_TIMEOUT_MINUTES must be positive, got {minutes}"
        raise ConfigurationError(msg)
    return minutes


def build_service_request(config: ProvisionConfig) -> ServiceRequest:
    """Build the creation request for ``config`` with a fresh service name.

    Raises
    ------
    ConfigurationError
        When the idle timeout is not a positive integer.
    """
    return ServiceRequest(
        name=build_service_name(config.service_prefix),
        provider=config.provider,
        region=config.region,
        idle_timeout_minutes=_parse_idle_timeout(config.idle_timeout_minutes),
    )


def wait_for_service(
    client: ClickHouseCloudClient,
    service_id: str,
    policy: PollPolicy,
) -> str:
    """Poll ``service_id`` until it reaches a ready state.

    Parameters
    ----------
    client : ClickHouseCloudClient
        Authenticated API client.
    service_id : str
        Identifier returned by the create call.
    policy : PollPolicy
        Attempt budget, delay, and state classification.

    Returns
    -------
    str
        The ready state that ended polling.

    Raises
    ------
    RequestError
        When a status call returns a non-success status. Not retried.
    LifecycleFailure
        When the service reports a failed state.
    ProvisionTimeoutError
        When the attempt budget runs out.
    """

    for attempt in range(1, policy.max_attempts + 1):
        state = client.get_service_state(service_id)
        logger.debug("attempt %d/%d: state=%s", attempt, policy.max_attempts, state)
        print(f"Current state: {state}")

        if state in policy.ready_states:
            return state
        if state in policy.failed_states:
            raise LifecycleFailure(state)

        if attempt < policy.max_attempts:
            policy.sleep(policy.delay_seconds)

    msg = (
        f"Service provisioning timed out after {policy.max_attempts} status checks; "
        f"service {service_id} may still be starting, see "
        f"{CONSOLE_BASE}/services/{service_id}"
    )
    raise ProvisionTimeoutError(msg)


def resolve_connection(created: CreatedService) -> ProvisionResult:
    """Derive connection parameters from the create response endpoints.

    The HTTPS endpoint supplies the host; the secure native endpoint is the
    fallback. Ports fall back to 8443 and 9440 respectively.

    Raises
    ------
    EndpointResolutionError
        When neither endpoint reports a host.
    """

    service = created.service
    https = service.find_endpoint(HTTPS_PROTOCOL)
    native = service.find_endpoint(NATIVE_SECURE_PROTOCOL)

    host = (https.host if https else "") or (native.host if native else "")
    if not host:
        msg = (
            f"Service {service.service_id} reported no {HTTPS_PROTOCOL} or "
            f"{NATIVE_SECURE_PROTOCOL} endpoint"
        )
        raise EndpointResolutionError(msg)

    return ProvisionResult(
        host=host,
        password=created.password,
        https_port=(https.port if https else None) or DEFAULT_HTTPS_PORT,
        native_port=(native.port if native else None) or DEFAULT_NATIVE_PORT,
        service_id=service.service_id,
    )


def provision_service(
    client: ClickHouseCloudClient,
    request: ServiceRequest,
    policy: PollPolicy | None = None,
) -> ProvisionResult:
    """Create a service, wait for it to become ready, and return its details."""

    policy = policy or PollPolicy()
    print("Provisioning ClickHouse Cloud service...")
    print(f"  Name: {request.name}")
    print(f"  Provider: {request.provider} ({request.region})")

    created = client.create_service(request)
    service = created.service
    print(f"Created service: {service.name} ({service.service_id})")

    print("Waiting for service to be ready...")
    wait_for_service(client, service.service_id, policy)
    print("Service is ready")

    return resolve_connection(created)
