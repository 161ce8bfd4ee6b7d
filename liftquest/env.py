from __future__ import annotations

import os
from pathlib import Path

ENV_PREFIX = "LIFTQUEST_"


def get_env(name: str, default: str | None = None) -> str | None:
    """
    Read a `LIFTQUEST_*` environment variable.

    Empty strings count as unset so a blank override in a shell profile does
    not shadow the TOML file or built-in defaults.
    """
    value = os.getenv(f"{ENV_PREFIX}{name}")
    if value is None or not value.strip():
        return default
    return value.strip()


def get_env_path(name: str) -> Path | None:
    """Path-valued variant of `get_env` with `~` expanded."""
    value = get_env(name)
    return Path(value).expanduser() if value else None
