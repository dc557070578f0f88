from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from fee_import.models.config_models import DatabaseConfig

"""PostgreSQL connection handling.

Connection parameters are resolved in this order:
    1. ``.env`` (loaded with override so it wins over the inherited environment)
    2. DATABASE_URL / PGDSN as a complete DSN
    3. individual PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
    4. the ``database`` section of config/import.yml for anything still missing
"""

logger = logging.getLogger(__name__)


def load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv; a failure only warns."""
    try:
        if path.exists():
            load_dotenv(dotenv_path=path, override=override)
    except Exception as e:  # pragma: no cover
        logger.warning("failed to load .env via python-dotenv: %s", e)


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    dsn_env = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn_env:
        return dsn_env
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def db_cursor(db_cfg: DatabaseConfig) -> Iterator[Any]:  # pragma: no cover (needs a live database)
    """Yield a psycopg2 cursor on a fresh connection.

    The connection runs in autocommit mode; multi-statement units of work are
    bracketed with explicit BEGIN/COMMIT by PostgresFeeStore.transaction().
    """
    conn = psycopg2.connect(resolve_dsn(db_cfg))
    conn.autocommit = True
    cur = None
    try:
        cur = conn.cursor()
        yield cur
    finally:
        if cur is not None:
            try:
                cur.close()
            except Exception:
                logger.debug("cursor close failed", exc_info=True)
        try:
            conn.close()
        except Exception:
            logger.debug("connection close failed", exc_info=True)
