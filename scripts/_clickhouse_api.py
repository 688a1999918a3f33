"""Minimal ClickHouse Cloud REST client.

Only the two calls needed for provisioning are implemented: creating a service
and reading its current state. Both authenticate with HTTP Basic auth using the
organization API key pair.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from scripts._clickhouse_errors import RequestError
from scripts._clickhouse_models import (
    API_BASE,
    CloudCredentials,
    CreatedService,
    Endpoint,
    ServiceRecord,
    ServiceRequest,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


def _parse_port(value: object) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def _parse_endpoints(raw: object) -> tuple[Endpoint, ...]:
    if not isinstance(raw, list):
        return ()
    endpoints: list[Endpoint] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        endpoints.append(
            Endpoint(
                protocol=str(item.get("protocol") or ""),
                host=str(item.get("host") or ""),
                port=_parse_port(item.get("port")),
            )
        )
    return tuple(endpoints)


def _result_section(payload: object) -> dict[str, Any]:
    if isinstance(payload, dict) and isinstance(payload.get("result"), dict):
        return payload["result"]
    return {}


def parse_created_service(payload: object) -> CreatedService:
    """Extract the service record and one-time password from a create response.

    Raises
    ------
    RequestError
        If the response does not carry a service id or a password.
    """

    result = _result_section(payload)
    service = result.get("service")
    service = service if isinstance(service, dict) else {}
    service_id = service.get("id")
    if not service_id:
        msg = f"Failed to get service ID from response: {json.dumps(payload)}"
        raise RequestError(msg)

    password = result.get("password")
    if not password:
        msg = f"Failed to get service password from response: {json.dumps(payload)}"
        raise RequestError(msg)

    return CreatedService(
        service=ServiceRecord(
            service_id=str(service_id),
            name=str(service.get("name") or ""),
            endpoints=_parse_endpoints(service.get("endpoints")),
            state=service.get("state"),
        ),
        password=str(password),
    )


class ClickHouseCloudClient:
    """Authenticated client for the ClickHouse Cloud organization API.

    Parameters
    ----------
    credentials : CloudCredentials
        API key pair and organization id.
    base_url : str, optional
        API root, defaults to the public ClickHouse Cloud endpoint.
    transport : httpx.BaseTransport | None, optional
        Custom transport; tests pass an ``httpx.MockTransport``.
    timeout : float, optional
        Per-request timeout in seconds.
    """

    def __init__(
        self,
        credentials: CloudCredentials,
        *,
        base_url: str = API_BASE,
        transport: httpx.BaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._credentials = credentials
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            auth=httpx.BasicAuth(credentials.key_id, credentials.key_secret),
            transport=transport,
            timeout=timeout,
        )

    def __enter__(self) -> ClickHouseCloudClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    @property
    def services_path(self) -> str:
        return f"/organizations/{self._credentials.org_id}/services"

    def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        logger.debug("%s %s", method, path)
        try:
            return self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            msg = f"Request to ClickHouse Cloud failed: {exc}"
            raise RequestError(msg) from exc

    def create_service(self, request: ServiceRequest) -> CreatedService:
        """Create a service and return its record with the one-time password."""

        response = self._send("POST", self.services_path, json=request.to_payload())
        if not response.is_success:
            msg = f"Failed to create service: {response.status_code} {response.text}"
            raise RequestError(
                msg, status_code=response.status_code, body=response.text
            )
        try:
            payload = response.json()
        except json.JSONDecodeError as exc:
            msg = f"Failed to parse create response: {response.text}"
            raise RequestError(msg, status_code=response.status_code) from exc
        return parse_created_service(payload)

    def get_service_state(self, service_id: str) -> str:
        """Return the current lifecycle state of ``service_id``."""

        response = self._send("GET", f"{self.services_path}/{service_id}")
        if not response.is_success:
            msg = f"Failed to check service status: {response.status_code}"
            raise RequestError(msg, status_code=response.status_code)
        try:
            payload = response.json()
        except json.JSONDecodeError as exc:
            msg = f"Failed to parse status response: {response.text}"
            raise RequestError(msg, status_code=response.status_code) from exc
        return str(_result_section(payload).get("state") or "")


__all__ = ["ClickHouseCloudClient", "parse_created_service"]
