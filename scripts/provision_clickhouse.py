#!/usr/bin/env -S uv run python
# /// script
# requires-python = ">=3.13"
# dependencies = ["cyclopts>=2.9", "httpx>=0.27"]
# ///
"""Provision a ClickHouse Cloud service and write its credentials to .env.

This script:
- skips work when ``CLICKHOUSE_HOST`` is exported or ``.env`` already exists
  (pass ``--force`` to regenerate the file);
- validates the ClickHouse Cloud API credentials;
- creates a service and waits for it to report ``running`` or ``idle``; and
- writes host, password, ports, and service id to the env file.

Usage:
  CLICKHOUSE_CLOUD_KEY=... CLICKHOUSE_CLOUD_SECRET=... CLICKHOUSE_ORG_ID=... \\
    ./scripts/provision_clickhouse.py [--force]
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Annotated

import httpx
from cyclopts import App, Parameter

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from scripts._clickhouse_api import ClickHouseCloudClient
from scripts._clickhouse_env_file import save_provision_result
from scripts._clickhouse_errors import ClickHouseProvisionError, PreflightError
from scripts._clickhouse_guard import (
    GuardDecision,
    RawProvisionInputs,
    check_configuration,
    require_credentials,
    resolve_provision_config,
)
from scripts._clickhouse_models import CONSOLE_BASE, PollPolicy, ProvisionConfig
from scripts._provision_clickhouse_flow import build_service_request, provision_service

app = App(help="Provision a ClickHouse Cloud service and write its credentials.")
logger = logging.getLogger(__name__)


def _report_preflight(exc: PreflightError) -> None:
    print("error: Missing required environment variables:", file=sys.stderr)
    for name in exc.missing:
        print(f"error:   {name}", file=sys.stderr)
    print(f"Get these from: {CONSOLE_BASE}/")


def run(
    config: ProvisionConfig,
    *,
    transport: httpx.BaseTransport | None = None,
    policy: PollPolicy | None = None,
) -> int:
    """Run the guard, provisioning flow, and env-file writer for ``config``.

    This is the single place that maps failures to an exit status.

    Parameters
    ----------
    config : ProvisionConfig
        Resolved configuration.
    transport : httpx.BaseTransport | None, optional
        HTTP transport override for the API client.
    policy : PollPolicy | None, optional
        Readiness polling policy; defaults to 60 checks five seconds apart.

    Returns
    -------
    int
        ``0`` on success or when nothing needed doing, ``1`` on failure.
    """

    try:
        decision = check_configuration(config)
    except PreflightError as exc:
        _report_preflight(exc)
        return 1

    if decision is GuardDecision.ALREADY_CONFIGURED:
        print("ClickHouse connection already configured")
        return 0
    if decision is GuardDecision.ENV_FILE_EXISTS:
        print(f"Using existing {config.env_file} (--force to regenerate)")
        return 0

    credentials = require_credentials(config)
    try:
        request = build_service_request(config)
        with ClickHouseCloudClient(
            credentials, base_url=config.api_base, transport=transport
        ) as client:
            result = provision_service(client, request, policy)
        save_provision_result(config.env_file, result)
    except ClickHouseProvisionError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    print("\nClickHouse provisioning complete.")
    return 0


@app.default
def main(
    *,
    force: Annotated[
        bool, Parameter(help="Regenerate the env file even if it already exists.")
    ] = False,
    env_file: Annotated[Path | None, Parameter(help="Output env file.")] = None,
    api_base: Annotated[str | None, Parameter(help="API base URL.")] = None,
    provider: Annotated[str | None, Parameter(help="Cloud provider.")] = None,
    region: Annotated[str | None, Parameter(help="Cloud region.")] = None,
    idle_timeout_minutes: Annotated[
        int | None, Parameter(help="Minutes of inactivity before idling.")
    ] = None,
    service_prefix: Annotated[
        str | None, Parameter(help="Prefix for the generated service name.")
    ] = None,
    verbose: Annotated[bool, Parameter(help="Enable debug logging.")] = False,
) -> int:
    """Provision ClickHouse Cloud unless a configuration already exists.

    Inputs resolve from CLI options first, then ``CLICKHOUSE_*`` environment
    variables, then defaults.
    """

    if verbose:
        logging.basicConfig(level=logging.DEBUG)

    raw_inputs = RawProvisionInputs(
        force=force,
        env_file=env_file,
        api_base=api_base,
        provider=provider,
        region=region,
        idle_timeout_minutes=idle_timeout_minutes,
        service_prefix=service_prefix,
    )
    config = resolve_provision_config(raw_inputs, os.environ)
    logger.debug(
        "env_file=%s api_base=%s force=%s", config.env_file, config.api_base, force
    )
    return run(config)


def cli() -> None:  # pragma: no cover - console script entrypoint
    raise SystemExit(app())


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    cli()
