from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

MAX_BODY_BYTES = 1048576  # 1 MB
SHUTDOWN_GRACE_SECONDS = 5


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "")
    if raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass
class ServiceConfig:
    port: int = 8080
    host: str = "0.0.0.0"
    default_parallelism: int = 5
    max_body_bytes: int = MAX_BODY_BYTES
    shutdown_grace_seconds: int = SHUTDOWN_GRACE_SECONDS
    copy_binary: str = "crane"
    copy_args: List[str] = field(default_factory=list)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> ServiceConfig:
        """Build a config from environment variables (``os.environ`` by default)."""
        env = os.environ if env is None else env

        default_parallelism = _int_env(env, "DEFAULT_PARALLELISM", 5)
        if default_parallelism < 1:
            raise ValueError("DEFAULT_PARALLELISM must be at least 1")

        return cls(
            port=_int_env(env, "PORT", 8080),
            host=env.get("HOST") or "0.0.0.0",
            default_parallelism=default_parallelism,
            copy_binary=env.get("COPY_BINARY") or "crane",
            copy_args=shlex.split(env.get("COPY_ARGS", "")),
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        )
