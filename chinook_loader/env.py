from __future__ import annotations

import os
from typing import Optional

from .types import ParseError

ENV_HOST = "CHINOOK_DB_HOST"
ENV_PORT = "CHINOOK_DB_PORT"
ENV_USER = "CHINOOK_DB_USER"
ENV_PASSWORD = "CHINOOK_DB_PASSWORD"
ENV_DATABASE = "CHINOOK_DB_NAME"


def env_override(value: Optional[str], env_key: str) -> Optional[str]:
    # Env vars only fill in what the CLI and config left empty.
    if value:
        return value
    return os.environ.get(env_key)


def env_int(env_key: str) -> Optional[int]:
    raw = os.environ.get(env_key)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw.strip())
    except ValueError:
        raise ParseError(f"{env_key} must be an integer") from None
