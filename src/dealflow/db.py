"""PostgreSQL access for the CRM entity tables via psycopg3."""

from __future__ import annotations

import psycopg
from psycopg.rows import dict_row

from dealflow.config import Settings, get_settings
from dealflow.errors import PersistenceError

APPLICATION_NAME = "dealflow-import"


def get_connection(settings: Settings | None = None) -> psycopg.Connection:
    """Open a connection with dict rows, tagged so imports show up in pg_stat_activity."""
    settings = settings or get_settings()
    if not settings.database_url:
        msg = "DEALFLOW_DATABASE_URL is not set"
        raise PersistenceError(msg)

    return psycopg.connect(
        settings.database_url,
        row_factory=dict_row,
        application_name=APPLICATION_NAME,
        connect_timeout=settings.db_connect_timeout,
    )


def execute_query(conn: psycopg.Connection, query: str, params: tuple = ()) -> list[dict]:
    """Execute a query and return all rows as dicts (empty for statements without rows)."""
    with conn.cursor() as cur:
        cur.execute(query, params)
        if cur.description:
            return cur.fetchall()
        return []


def fetch_one(conn: psycopg.Connection, query: str, params: tuple = ()) -> dict:
    """Execute a query that must return a row, e.g. ``INSERT ... RETURNING``."""
    rows = execute_query(conn, query, params)
    if not rows:
        msg = "Query returned no rows"
        raise PersistenceError(msg)
    return rows[0]
