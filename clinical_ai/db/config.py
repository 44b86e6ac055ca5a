"""Where the clinical AI tables live and how the engine connects to them.

``CLINICAL_AI_DATABASE_URL`` (or ``DATABASE_URL``) selects the database;
without either a SQLite file in the platform data directory is used.  Pool
sizing and PostgreSQL timeouts come from the ``DB_*``, ``PGCONNECT_TIMEOUT``
and ``STATEMENT_TIMEOUT_MS`` variables and are read once, when the settings
are resolved.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

from platformdirs import user_data_dir
from sqlalchemy.engine import make_url

from clinical_ai.config import APP_NAME, get_int_env

# env var -> create_engine keyword
POOL_ENV_OPTIONS = {
    "DB_POOL_SIZE": "pool_size",
    "DB_MAX_OVERFLOW": "max_overflow",
    "DB_POOL_TIMEOUT": "pool_timeout",
}


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    pool: Dict[str, int] = field(default_factory=dict)
    connect_args: Dict[str, Any] = field(default_factory=dict)

    @property
    def backend(self) -> str:
        return make_url(self.url).get_backend_name()

    def engine_options(self) -> Dict[str, Any]:
        """Keyword arguments for :func:`sqlalchemy.create_engine`."""

        options: Dict[str, Any] = {"future": True, **self.pool}
        if self.connect_args:
            options["connect_args"] = dict(self.connect_args)
        return options


def _resolve_url() -> str:
    raw = os.getenv("CLINICAL_AI_DATABASE_URL") or os.getenv("DATABASE_URL")
    if not raw:
        data_dir = Path(user_data_dir(APP_NAME, APP_NAME))
        data_dir.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{data_dir / 'clinical_ai.db'}"
    url = make_url(raw)
    # Hosted providers hand out bare postgres:// URLs; pin the psycopg 3 driver.
    if url.drivername in ("postgres", "postgresql"):
        url = url.set(drivername="postgresql+psycopg")
    return url.render_as_string(hide_password=False)


def _connect_args(backend: str) -> Dict[str, Any]:
    if backend == "sqlite":
        return {"check_same_thread": False}
    if backend != "postgresql":
        return {}
    args: Dict[str, Any] = {}
    connect_timeout = get_int_env("PGCONNECT_TIMEOUT")
    if connect_timeout is not None:
        args["connect_timeout"] = connect_timeout
    server_options = ["-c timezone=UTC"]
    statement_timeout = get_int_env("STATEMENT_TIMEOUT_MS")
    if statement_timeout is not None:
        server_options.append(f"-c statement_timeout={statement_timeout}")
    args["options"] = " ".join(server_options)
    return args


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
    """Resolve the database settings from the environment once per process."""

    url = _resolve_url()
    pool: Dict[str, int] = {}
    for env_name, keyword in POOL_ENV_OPTIONS.items():
        value = get_int_env(env_name)
        if value is not None:
            pool[keyword] = value
    return DatabaseSettings(
        url=url,
        pool=pool,
        connect_args=_connect_args(make_url(url).get_backend_name()),
    )


__all__ = ["DatabaseSettings", "get_database_settings"]
