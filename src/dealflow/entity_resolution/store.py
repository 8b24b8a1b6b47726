"""Entity store used by the resolver.

The resolver only needs a handful of operations per entity kind: lookup
by field, substring lookup, full scan, insert, partial update and a
delete used by import rollback.  :class:`PostgresEntityStore` implements
them with raw SQL via psycopg3; :class:`InMemoryEntityStore` keeps rows in
insertion order and backs dry runs and tests.

Lookups are check-then-act: nothing here guards against two concurrent
batches creating the same entity.
"""

from __future__ import annotations

import copy
import uuid
from collections.abc import Mapping
from typing import Any, Protocol

import psycopg
import structlog

from dealflow.db import execute_query
from dealflow.errors import PersistenceError
from dealflow.models import EntityKind

logger = structlog.get_logger(__name__)

_TRACE_COLUMNS = ("import_batch_id", "import_log_id")

# Table name and writable columns per entity kind
TABLES: dict[EntityKind, tuple[str, tuple[str, ...]]] = {
    EntityKind.COMPANY: (
        "companies",
        ("name", "tax_id", "website", "sector", "location", "revenue", "employees",
         "description", *_TRACE_COLUMNS),
    ),
    EntityKind.CONTACT: (
        "contacts",
        ("first_name", "last_name", "email", "phone", "position", "linkedin", "notes",
         "company_id", *_TRACE_COLUMNS),
    ),
    EntityKind.DEAL: (
        "deals",
        ("title", "deal_type", "stage", "value", "start_date", "description", "sector",
         "company_id", *_TRACE_COLUMNS),
    ),
    EntityKind.CAMPAIGN_MEMBERSHIP: (
        "campaign_contacts",
        ("campaign_id", "contact_id", *_TRACE_COLUMNS),
    ),
}


def _table(kind: EntityKind) -> str:
    return TABLES[kind][0]


def _check_columns(kind: EntityKind, columns: Any) -> None:
    allowed = TABLES[kind][1]
    unknown = [c for c in columns if c != "id" and c not in allowed]
    if unknown:
        msg = f"Unknown {kind.value} columns: {unknown}"
        raise ValueError(msg)


class EntityStore(Protocol):
    """Operations the resolver and rollback need from persistence."""

    def find_by_field(self, kind: EntityKind, field: str, value: Any) -> list[dict]: ...

    def find_containing(self, kind: EntityKind, field: str, fragment: str) -> list[dict]: ...

    def find_all(self, kind: EntityKind) -> list[dict]: ...

    def insert(self, kind: EntityKind, record: Mapping[str, Any]) -> dict: ...

    def update(self, kind: EntityKind, entity_id: str, partial: Mapping[str, Any]) -> dict: ...

    def delete_by_field(self, kind: EntityKind, field: str, value: Any) -> int: ...


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


class InMemoryEntityStore:
    """Dict-of-lists store; rows are kept and returned in insertion order."""

    def __init__(self) -> None:
        self._rows: dict[EntityKind, list[dict]] = {kind: [] for kind in TABLES}

    def find_by_field(self, kind: EntityKind, field: str, value: Any) -> list[dict]:
        _check_columns(kind, [field])
        return [copy.deepcopy(r) for r in self._rows[kind] if r.get(field) == value]

    def find_containing(self, kind: EntityKind, field: str, fragment: str) -> list[dict]:
        _check_columns(kind, [field])
        needle = fragment.lower()
        return [
            copy.deepcopy(r) for r in self._rows[kind]
            if r.get(field) and needle in str(r[field]).lower()
        ]

    def find_all(self, kind: EntityKind) -> list[dict]:
        return [copy.deepcopy(r) for r in self._rows[kind]]

    def insert(self, kind: EntityKind, record: Mapping[str, Any]) -> dict:
        _check_columns(kind, record)
        row = {"id": str(uuid.uuid4()), **record}
        self._rows[kind].append(row)
        return copy.deepcopy(row)

    def update(self, kind: EntityKind, entity_id: str, partial: Mapping[str, Any]) -> dict:
        _check_columns(kind, partial)
        for row in self._rows[kind]:
            if row["id"] == entity_id:
                row.update(partial)
                return copy.deepcopy(row)
        msg = f"{kind.value} {entity_id} not found"
        raise PersistenceError(msg)

    def delete_by_field(self, kind: EntityKind, field: str, value: Any) -> int:
        _check_columns(kind, [field])
        before = len(self._rows[kind])
        self._rows[kind] = [r for r in self._rows[kind] if r.get(field) != value]
        return before - len(self._rows[kind])

    def count(self, kind: EntityKind) -> int:
        return len(self._rows[kind])


# ---------------------------------------------------------------------------
# PostgreSQL store
# ---------------------------------------------------------------------------


def _escape_like(fragment: str) -> str:
    return fragment.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PostgresEntityStore:
    """Raw-SQL store over a psycopg3 connection with a dict row factory.

    Every statement runs inside its own savepoint so a failed write leaves
    the connection usable for the next row.  Column names are checked
    against :data:`TABLES` before being interpolated into SQL.
    """

    def __init__(self, conn: psycopg.Connection) -> None:
        self._conn = conn

    def _run(self, query: str, params: tuple = ()) -> list[dict]:
        try:
            with self._conn.transaction():
                return execute_query(self._conn, query, params)
        except psycopg.Error as e:
            logger.warning("entity_store_error", error=str(e))
            raise PersistenceError(str(e)) from e

    def find_by_field(self, kind: EntityKind, field: str, value: Any) -> list[dict]:
        _check_columns(kind, [field])
        return self._run(
            f"SELECT * FROM {_table(kind)} WHERE {field} = %s ORDER BY created_at, id",
            (value,),
        )

    def find_containing(self, kind: EntityKind, field: str, fragment: str) -> list[dict]:
        _check_columns(kind, [field])
        return self._run(
            f"SELECT * FROM {_table(kind)} WHERE {field} ILIKE %s ORDER BY created_at, id",
            (f"%{_escape_like(fragment)}%",),
        )

    def find_all(self, kind: EntityKind) -> list[dict]:
        return self._run(f"SELECT * FROM {_table(kind)} ORDER BY created_at, id")

    def insert(self, kind: EntityKind, record: Mapping[str, Any]) -> dict:
        _check_columns(kind, record)
        entity_id = str(uuid.uuid4())
        columns = ["id", *record]
        placeholders = ", ".join(["%s"] * len(columns))
        rows = self._run(
            f"""
            INSERT INTO {_table(kind)} ({", ".join(columns)})
            VALUES ({placeholders})
            RETURNING *
            """,
            (entity_id, *record.values()),
        )
        return rows[0] if rows else {"id": entity_id, **record}

    def update(self, kind: EntityKind, entity_id: str, partial: Mapping[str, Any]) -> dict:
        _check_columns(kind, partial)
        if not partial:
            rows = self.find_by_field(kind, "id", entity_id)
        else:
            assignments = ", ".join(f"{column} = %s" for column in partial)
            rows = self._run(
                f"UPDATE {_table(kind)} SET {assignments} WHERE id = %s RETURNING *",
                (*partial.values(), entity_id),
            )
        if not rows:
            msg = f"{kind.value} {entity_id} not found"
            raise PersistenceError(msg)
        return rows[0]

    def delete_by_field(self, kind: EntityKind, field: str, value: Any) -> int:
        _check_columns(kind, [field])
        rows = self._run(
            f"DELETE FROM {_table(kind)} WHERE {field} = %s RETURNING id",
            (value,),
        )
        return len(rows)
