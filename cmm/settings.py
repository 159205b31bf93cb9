from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from psycopg.conninfo import make_conninfo

from .errors import ConfigError


DEFAULT_HEALTHCHECK_FILE = "/healthcheck/manager-ready"
CITUS_PORT = 5432


def _env_bool(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class DatabaseTarget:
    host: str
    user: str
    dbname: str
    password: str | None = field(default=None, repr=False)

    def conninfo(self) -> str:
        """libpq keyword/value connection string."""
        params = {"host": self.host, "user": self.user, "dbname": self.dbname}
        if self.password:
            params["password"] = self.password
        return make_conninfo(**params)


@dataclass(frozen=True)
class Settings:
    # Coordinator
    citus_host: str = "master"
    postgres_user: str = "postgres"
    postgres_password: str | None = field(default=None, repr=False)
    postgres_db: str = "postgres"
    node_port: int = CITUS_PORT

    # This container
    hostname: str = ""

    # Runtime knobs
    healthcheck_file: str = DEFAULT_HEALTHCHECK_FILE
    retry_interval_s: float = 1.0
    shutdown_grace_s: float = 10.0
    log_level: str = "INFO"
    log_json: bool = True

    def database_target(self) -> DatabaseTarget:
        return DatabaseTarget(
            host=self.citus_host,
            user=self.postgres_user,
            dbname=self.postgres_db,
            password=self.postgres_password,
        )


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build settings from the process environment.

    Environment variables:
      - CITUS_HOST (default "master")
      - POSTGRES_USER (default "postgres") / POSTGRES_PASSWORD / POSTGRES_DB (default = user)
      - HOSTNAME (required, this container's id or name)
      - CMM_HEALTHCHECK_FILE / CMM_RETRY_INTERVAL_S / CMM_NODE_PORT
      - CMM_SHUTDOWN_GRACE_S / CMM_LOG_LEVEL / CMM_LOG_JSON
    """
    env = os.environ if environ is None else environ

    hostname = env.get("HOSTNAME", "").strip()
    if not hostname:
        raise ConfigError("HOSTNAME is not set; cannot identify the running container")

    user = env.get("POSTGRES_USER") or "postgres"
    retry_interval_s = _env_float(env, "CMM_RETRY_INTERVAL_S", 1.0)
    if retry_interval_s < 0:
        raise ConfigError("CMM_RETRY_INTERVAL_S must not be negative")
    node_port = _env_int(env, "CMM_NODE_PORT", CITUS_PORT)
    if not 1 <= node_port <= 65535:
        raise ConfigError(f"CMM_NODE_PORT out of range: {node_port}")

    return Settings(
        citus_host=env.get("CITUS_HOST") or "master",
        postgres_user=user,
        postgres_password=env.get("POSTGRES_PASSWORD") or None,
        postgres_db=env.get("POSTGRES_DB") or user,
        node_port=node_port,
        hostname=hostname,
        healthcheck_file=env.get("CMM_HEALTHCHECK_FILE") or DEFAULT_HEALTHCHECK_FILE,
        retry_interval_s=retry_interval_s,
        shutdown_grace_s=max(0.0, _env_float(env, "CMM_SHUTDOWN_GRACE_S", 10.0)),
        log_level=(env.get("CMM_LOG_LEVEL") or "INFO").upper(),
        log_json=_env_bool(env, "CMM_LOG_JSON", True),
    )
