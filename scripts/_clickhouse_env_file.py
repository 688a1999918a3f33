"""Render and persist ClickHouse connection settings as a dotenv file."""

from __future__ import annotations

import datetime as dt
import os
from collections.abc import Callable
from contextlib import suppress
from pathlib import Path

from scripts._clickhouse_errors import PersistenceError
from scripts._clickhouse_models import ProvisionResult


def _utc_now() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


def _format_timestamp(moment: dt.datetime) -> str:
    """Format ``moment`` as a millisecond ISO-8601 UTC timestamp.

    Examples
    --------
    >>> _format_timestamp(dt.datetime(2024, 5, 1, 12, 0, tzinfo=dt.UTC))
    '2024-05-01T12:00:00.000Z'
    """
    utc = moment.astimezone(dt.UTC)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _quote(value: str) -> str:
    r"""Return ``value`` as a double-quoted dotenv value.

    Examples
    --------
    >>> _quote('a"b\\c')
    '"a\\"b\\\\c"'
    """
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


def build_env_entries(result: ProvisionResult) -> dict[str, str]:
    """Return the ordered ``CLICKHOUSE_*`` assignments for ``result``."""
    return {
        "CLICKHOUSE_HOST": result.host,
        "CLICKHOUSE_USER": result.user,
        "CLICKHOUSE_PASSWORD": result.password,
        "CLICKHOUSE_DATABASE": result.database,
        "CLICKHOUSE_HTTPS_PORT": str(result.https_port),
        "CLICKHOUSE_NATIVE_PORT": str(result.native_port),
        "CLICKHOUSE_SERVICE_ID": result.service_id,
    }


def render_env_file(
    result: ProvisionResult,
    now: Callable[[], dt.datetime] = _utc_now,
) -> str:
    """Render ``result`` as ``KEY="value"`` lines with header and URL comments.

    Examples
    --------
    >>> result = ProvisionResult("h1", "p", 443, 9000, "svc-1")
    >>> render_env_file(result).splitlines()[1]
    'CLICKHOUSE_HOST="h1"'
    """
    lines = [f"# Generated on {_format_timestamp(now())}"]
    lines.extend(
        f"{key}={_quote(value)}" for key, value in build_env_entries(result).items()
    )
    lines.append(f"# Service URL: {result.console_url}")
    return "\n".join(lines) + "\n"


def write_env_file(path: Path, content: str) -> None:
    """Write ``content`` to ``path`` atomically, replacing any existing file.

    Raises
    ------
    PersistenceError
        When the file or its temporary sibling cannot be written.
    """

    tmp_path = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
        except Exception:
            with suppress(FileNotFoundError):
                os.unlink(tmp_path)
            raise
        tmp_path.replace(path)
    except OSError as exc:
        msg = f"Failed to write {path}: {exc}"
        raise PersistenceError(msg) from exc


def save_provision_result(path: Path, result: ProvisionResult) -> None:
    """Persist ``result`` to ``path`` and confirm on stdout."""
    write_env_file(path, render_env_file(result))
    print(f"Configured {path}")
