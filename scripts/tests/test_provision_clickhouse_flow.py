"""Unit tests for the ClickHouse provisioning flow."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from scripts._clickhouse_api import ClickHouseCloudClient
from scripts._clickhouse_errors import (
    ConfigurationError,
    EndpointResolutionError,
    LifecycleFailure,
    ProvisionTimeoutError,
    RequestError,
)
from scripts._clickhouse_models import (
    CloudCredentials,
    CreatedService,
    Endpoint,
    PollPolicy,
    ProvisionConfig,
    ServiceRecord,
)
from scripts._provision_clickhouse_flow import (
    build_service_request,
    provision_service,
    resolve_connection,
    wait_for_service,
)

if TYPE_CHECKING:
    from conftest import FakeCloudApi


def _client(fake_cloud: FakeCloudApi) -> ClickHouseCloudClient:
    return ClickHouseCloudClient(
        CloudCredentials("key", "secret", "org-1"), transport=fake_cloud.transport
    )


def _policy(sleeps: list[float], **overrides: object) -> PollPolicy:
    return PollPolicy(sleep=sleeps.append, **overrides)  # type: ignore[arg-type]


def _created(*endpoints: Endpoint) -> CreatedService:
    return CreatedService(
        service=ServiceRecord("svc-1", "railway-1", tuple(endpoints)), password="pw"
    )


def test_wait_for_service_retries_starting(fake_cloud: FakeCloudApi) -> None:
    fake_cloud.states = ["starting", "starting", "running"]
    sleeps: list[float] = []

    with _client(fake_cloud) as client:
        state = wait_for_service(client, "svc-123", _policy(sleeps))

    assert state == "running"
    assert len(fake_cloud.status_calls) == 3
    assert sleeps == [5.0, 5.0]


@pytest.mark.parametrize("state", ["stopped", "stopping"])
def test_wait_for_service_fails_fast_on_terminal_state(
    fake_cloud: FakeCloudApi, state: str
) -> None:
    fake_cloud.states = [state, "running"]
    sleeps: list[float] = []

    with _client(fake_cloud) as client, pytest.raises(LifecycleFailure) as excinfo:
        wait_for_service(client, "svc-123", _policy(sleeps))

    assert excinfo.value.state == state
    assert state in str(excinfo.value)
    assert len(fake_cloud.status_calls) == 1
    assert sleeps == []


def test_wait_for_service_times_out(fake_cloud: FakeCloudApi) -> None:
    fake_cloud.states = ["starting"]
    sleeps: list[float] = []

    with (
        _client(fake_cloud) as client,
        pytest.raises(ProvisionTimeoutError, match="timed out") as excinfo,
    ):
        wait_for_service(client, "svc-123", _policy(sleeps))

    message = str(excinfo.value)
    assert "svc-123" in message
    assert "https://clickhouse.cloud/services/svc-123" in message
    assert len(fake_cloud.status_calls) == 60
    assert len(sleeps) == 59


def test_wait_for_service_does_not_retry_http_errors(fake_cloud: FakeCloudApi) -> None:
    fake_cloud.status_code = 502
    sleeps: list[float] = []

    with _client(fake_cloud) as client, pytest.raises(RequestError, match="502"):
        wait_for_service(client, "svc-123", _policy(sleeps))

    assert len(fake_cloud.status_calls) == 1


def test_resolve_connection_prefers_https_endpoint() -> None:
    result = resolve_connection(
        _created(Endpoint("nativesecure", "native.host", 9000), Endpoint("https", "h1", 443))
    )
    assert (result.host, result.https_port, result.native_port) == ("h1", 443, 9000)
    assert result.user == "default"
    assert result.database == "default"


def test_resolve_connection_falls_back_to_native_host_and_default_ports() -> None:
    result = resolve_connection(_created(Endpoint("nativesecure", "native.host")))
    assert result.host == "native.host"
    assert result.https_port == 8443
    assert result.native_port == 9440


def test_resolve_connection_without_endpoints_fails() -> None:
    with pytest.raises(EndpointResolutionError, match="svc-1"):
        resolve_connection(_created(Endpoint("mysql", "other.host", 3306)))


def test_build_service_request_uses_config(tmp_path: Path) -> None:
    config = ProvisionConfig(
        env_file=tmp_path / ".env",
        force=False,
        host_configured=False,
        credentials=None,
        missing_credentials=(),
        region="eu-west-1",
        service_prefix="preview",
    )
    request = build_service_request(config)
    assert request.name.startswith("preview-")
    assert request.region == "eu-west-1"
    assert request.provider == "aws"
    assert request.idle_timeout_minutes == 5


def _config_with_idle_timeout(tmp_path: Path, value: str) -> ProvisionConfig:
    return ProvisionConfig(
        env_file=tmp_path / ".env",
        force=False,
        host_configured=False,
        credentials=None,
        missing_credentials=(),
        idle_timeout_minutes=value,
    )


def test_build_service_request_parses_idle_timeout(tmp_path: Path) -> None:
    request = build_service_request(_config_with_idle_timeout(tmp_path, "15"))
    assert request.idle_timeout_minutes == 15


@pytest.mark.parametrize("value", ["soon", "1.5", "0", "-3"])
def test_build_service_request_rejects_bad_idle_timeout(
    tmp_path: Path, value: str
) -> None:
    with pytest.raises(ConfigurationError, match="CLICKHOUSE_IDLE_TIMEOUT_MINUTES"):
        build_service_request(_config_with_idle_timeout(tmp_path, value))


def test_provision_service_uses_endpoints_from_create(fake_cloud: FakeCloudApi) -> None:
    fake_cloud.states = ["starting", "idle"]
    sleeps: list[float] = []
    config = ProvisionConfig(
        env_file=Path(".env"),
        force=False,
        host_configured=False,
        credentials=None,
        missing_credentials=(),
    )

    with _client(fake_cloud) as client:
        result = provision_service(client, build_service_request(config), _policy(sleeps))

    assert result.host == "h1"
    assert result.password == "p"
    assert result.service_id == "svc-123"
    assert len(fake_cloud.create_calls) == 1
    assert len(fake_cloud.status_calls) == 2
