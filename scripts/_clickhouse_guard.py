"""Decide whether a provisioning run is needed and resolve its configuration.

The guard runs before any network traffic. It short-circuits when a
ClickHouse host is already exported or an env file is already present, and
otherwise checks that the API credential triple is available.

Environment
-----------
``CLICKHOUSE_HOST``
    When set, the run is skipped entirely.
``CLICKHOUSE_CLOUD_KEY`` / ``CLICKHOUSE_CLOUD_SECRET`` / ``CLICKHOUSE_ORG_ID``
    Required API credentials.
``CLICKHOUSE_API_BASE``, ``CLICKHOUSE_ENV_FILE``, ``CLICKHOUSE_PROVIDER``,
``CLICKHOUSE_REGION``, ``CLICKHOUSE_IDLE_TIMEOUT_MINUTES``,
``CLICKHOUSE_SERVICE_PREFIX``
    Optional overrides for the request settings and output path.
"""

from __future__ import annotations

import enum
from collections import abc as cabc
from dataclasses import dataclass
from pathlib import Path

from scripts._clickhouse_errors import PreflightError
from scripts._clickhouse_models import (
    API_BASE,
    DEFAULT_ENV_FILE,
    DEFAULT_IDLE_TIMEOUT_MINUTES,
    DEFAULT_PROVIDER,
    DEFAULT_REGION,
    DEFAULT_SERVICE_PREFIX,
    CloudCredentials,
    ProvisionConfig,
)
from scripts._input_resolution import (
    InputResolution,
    collect_missing,
    resolve_input,
)

HOST_ENV_KEY = "CLICKHOUSE_HOST"
KEY_ENV_KEY = "CLICKHOUSE_CLOUD_KEY"
SECRET_ENV_KEY = "CLICKHOUSE_CLOUD_SECRET"
ORG_ENV_KEY = "CLICKHOUSE_ORG_ID"

CREDENTIAL_RESOLUTIONS = (
    InputResolution(env_key=KEY_ENV_KEY, required=True),
    InputResolution(env_key=SECRET_ENV_KEY, required=True),
    InputResolution(env_key=ORG_ENV_KEY, required=True),
)


class GuardDecision(enum.Enum):
    """Outcome of the pre-flight configuration check."""

    ALREADY_CONFIGURED = "already-configured"
    ENV_FILE_EXISTS = "env-file-exists"
    PROVISION = "provision"


@dataclass(frozen=True, slots=True)
class RawProvisionInputs:
    """Raw provisioning inputs from the CLI."""

    force: bool = False
    env_file: Path | None = None
    api_base: str | None = None
    provider: str | None = None
    region: str | None = None
    idle_timeout_minutes: int | None = None
    service_prefix: str | None = None


def _resolve_credentials(
    env: cabc.Mapping[str, str],
) -> tuple[CloudCredentials | None, tuple[str, ...]]:
    missing = tuple(collect_missing(CREDENTIAL_RESOLUTIONS, env))
    if missing:
        return None, missing
    key_id, key_secret, org_id = (
        str(resolve_input(None, resolution, env))
        for resolution in CREDENTIAL_RESOLUTIONS
    )
    return CloudCredentials(key_id, key_secret, org_id), ()


def resolve_provision_config(
    raw: RawProvisionInputs,
    env: cabc.Mapping[str, str],
) -> ProvisionConfig:
    """Resolve provisioning configuration from CLI values and ``env``.

    Nothing is validated here so the guard can short-circuit first: missing
    credentials are recorded for :func:`check_configuration` and request
    settings stay raw until a service is actually created.

    Parameters
    ----------
    raw : RawProvisionInputs
        Values supplied on the command line.
    env : Mapping[str, str]
        Process environment.

    Returns
    -------
    ProvisionConfig
        Configuration consumed by the guard, the flow, and the writer.

    Examples
    --------
    >>> resolve_provision_config(RawProvisionInputs(), {}).missing_credentials
    ('CLICKHOUSE_CLOUD_KEY', 'CLICKHOUSE_CLOUD_SECRET', 'CLICKHOUSE_ORG_ID')
    """

    env_file = resolve_input(
        raw.env_file,
        InputResolution(
            env_key="CLICKHOUSE_ENV_FILE", default=DEFAULT_ENV_FILE, as_path=True
        ),
        env,
    )
    credentials, missing = _resolve_credentials(env)
    host = env.get(HOST_ENV_KEY)

    def _setting(value: str | int | None, env_key: str, default: str) -> str:
        return str(resolve_input(value, InputResolution(env_key, default), env))

    return ProvisionConfig(
        env_file=Path(env_file),
        force=raw.force,
        host_configured=bool(host and host.strip()),
        credentials=credentials,
        missing_credentials=missing,
        api_base=_setting(raw.api_base, "CLICKHOUSE_API_BASE", API_BASE),
        provider=_setting(raw.provider, "CLICKHOUSE_PROVIDER", DEFAULT_PROVIDER),
        region=_setting(raw.region, "CLICKHOUSE_REGION", DEFAULT_REGION),
        idle_timeout_minutes=_setting(
            raw.idle_timeout_minutes,
            "CLICKHOUSE_IDLE_TIMEOUT_MINUTES",
            str(DEFAULT_IDLE_TIMEOUT_MINUTES),
        ),
        service_prefix=_setting(
            raw.service_prefix, "CLICKHOUSE_SERVICE_PREFIX", DEFAULT_SERVICE_PREFIX
        ),
    )


def check_configuration(config: ProvisionConfig) -> GuardDecision:
    """Return whether provisioning should run for ``config``.

    Raises
    ------
    PreflightError
        When provisioning is needed but credentials are missing.
    """

    if config.host_configured:
        return GuardDecision.ALREADY_CONFIGURED
    if config.env_file.exists() and not config.force:
        return GuardDecision.ENV_FILE_EXISTS
    require_credentials(config)
    return GuardDecision.PROVISION


def require_credentials(config: ProvisionConfig) -> CloudCredentials:
    """Return the credentials of ``config`` or raise :class:`PreflightError`."""

    if config.credentials is None:
        raise PreflightError(config.missing_credentials)
    return config.credentials
