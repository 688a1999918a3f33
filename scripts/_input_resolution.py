"""Shared helpers for resolving CLI and environment inputs."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from collections import abc as cabc


@dataclass(frozen=True, slots=True)
class InputResolution:
    """Configuration for resolving an input from multiple sources."""

    env_key: str
    default: str | Path | None = None
    required: bool = False
    as_path: bool = False


class MissingInputError(LookupError):
    """Raised when a required input has no value from any source."""

    def __init__(self, env_key: str) -> None:
        self.env_key = env_key
        super().__init__(f"{env_key} is required")


def resolve_input(
    param_value: str | Path | None,
    resolution: InputResolution,
    env: cabc.Mapping[str, str] | None = None,
) -> str | Path | None:
    """Resolve input from parameter, environment variable, or default.

    Blank environment values count as unset.
    """

    if param_value is not None:
        return param_value

    env_value = (os.environ if env is None else env).get(resolution.env_key)
    if env_value is not None and env_value.strip():
        return Path(env_value) if resolution.as_path else env_value

    if resolution.required:
        raise MissingInputError(resolution.env_key)

    return resolution.default


def collect_missing(
    resolutions: cabc.Iterable[InputResolution],
    env: cabc.Mapping[str, str] | None = None,
) -> list[str]:
    """Return the env keys of required inputs that cannot be resolved.

    Examples
    --------
    >>> collect_missing([InputResolution("A", required=True)], env={"A": ""})
    ['A']
    """

    missing: list[str] = []
    for resolution in resolutions:
        try:
            resolve_input(None, resolution, env)
        except MissingInputError:
            missing.append(resolution.env_key)
    return missing
