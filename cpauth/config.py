"""Runtime settings read from ``CPAUTH_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .constants import DEFAULT_GROUP, DEFAULT_HOST, DEFAULT_PORT, DEFAULT_STORE, DEFAULT_URL


@dataclass(frozen=True)
class Settings:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    store: str = DEFAULT_STORE
    group: str = DEFAULT_GROUP
    url: str = DEFAULT_URL
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        port = env.get("CPAUTH_PORT", str(DEFAULT_PORT))
        try:
            port_value = int(port)
        except ValueError as exc:
            raise ValueError(f"CPAUTH_PORT must be an integer, got {port!r}") from exc
        return cls(
            host=env.get("CPAUTH_HOST", DEFAULT_HOST),
            port=port_value,
            store=env.get("CPAUTH_STORE", DEFAULT_STORE),
            group=env.get("CPAUTH_GROUP", DEFAULT_GROUP),
            url=env.get("CPAUTH_URL", DEFAULT_URL),
            log_level=env.get("CPAUTH_LOG_LEVEL", "INFO").upper(),
        )


__all__ = ["Settings"]
