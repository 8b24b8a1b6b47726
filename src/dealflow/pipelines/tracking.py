"""Import logs, statistics, itemized reports, rollback and templates.

Every import is recorded in ``import_logs`` with the configuration it ran
with and its final statistics.  Entities created by an import carry its
``import_log_id``, which is what :func:`rollback_import` deletes by.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pandas as pd
import structlog

from dealflow.db import execute_query, fetch_one
from dealflow.models import EntityKind, ImportConfig, ImportRowResult, ImportType, RowStatus
from dealflow.pipelines.aliases import alias_table

if TYPE_CHECKING:
    import psycopg

    from dealflow.entity_resolution.store import EntityStore

logger = structlog.get_logger(__name__)

REPORT_COLUMNS = ["row", "name", "status", "reason", "message", "entity_id"]

# Children before parents
_ROLLBACK_ORDER = (
    EntityKind.DEAL,
    EntityKind.CAMPAIGN_MEMBERSHIP,
    EntityKind.CONTACT,
    EntityKind.COMPANY,
)


# ---------------------------------------------------------------------------
# Statistics and reports
# ---------------------------------------------------------------------------

def calculate_stats(results: Sequence[ImportRowResult]) -> dict[str, int]:
    """Count results by status.

    Returns
    -------
    dict
        ``{"total": int, "successful": int, "failed": int, "skipped": int}``
    """
    return {
        "total": len(results),
        "successful": sum(1 for r in results if r.status is RowStatus.SUCCESS),
        "failed": sum(1 for r in results if r.status is RowStatus.ERROR),
        "skipped": sum(1 for r in results if r.status is RowStatus.SKIPPED),
    }


def results_to_frame(results: Sequence[ImportRowResult]) -> pd.DataFrame:
    """Build the itemized report, one line per input row (1-based ``row``)."""
    records = [
        {
            "row": r.row_index + 1,
            "name": r.display_name,
            "status": r.status.value,
            "reason": r.reason,
            "message": r.message,
            "entity_id": r.entity_ref,
        }
        for r in results
    ]
    return pd.DataFrame(records, columns=REPORT_COLUMNS)


def write_report(results: Sequence[ImportRowResult], path: Path) -> Path:
    """Write the itemized report as CSV and return its path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    results_to_frame(results).to_csv(path, index=False)
    logger.info("import_report_written", path=str(path), rows=len(results))
    return path


# ---------------------------------------------------------------------------
# Import log
# ---------------------------------------------------------------------------

def create_import_log(
    conn: psycopg.Connection,
    import_type: ImportType,
    total_rows: int,
    file_name: str,
    config: ImportConfig,
) -> str:
    """Insert an ``import_logs`` row in ``processing`` state and return its id."""
    row = fetch_one(
        conn,
        """
        INSERT INTO import_logs (
            import_type, file_name, total_rows, import_batch_id, config, status
        ) VALUES (%s, %s, %s, %s, %s::jsonb, 'processing')
        RETURNING id::text AS id
        """,
        (
            import_type.value,
            file_name,
            total_rows,
            config.import_batch_id,
            json.dumps({
                "duplicate_strategy": config.duplicate_strategy.value,
                "auto_create_related_entities": config.auto_create_related_entities,
                "campaign_id": config.campaign_id,
            }),
        ),
    )
    return row["id"]


def complete_import_log(
    conn: psycopg.Connection,
    import_log_id: str,
    stats: dict[str, int],
    status: str = "completed",
) -> None:
    """Record final statistics and status on an import log."""
    execute_query(
        conn,
        """
        UPDATE import_logs
        SET successful = %s, failed = %s, skipped = %s, status = %s,
            completed_at = now()
        WHERE id = %s
        """,
        (stats["successful"], stats["failed"], stats["skipped"], status, import_log_id),
    )


# ---------------------------------------------------------------------------
# Rollback
# ---------------------------------------------------------------------------

def rollback_import(store: EntityStore, import_log_id: str) -> dict[str, int]:
    """Delete every entity tagged with *import_log_id*, children first.

    Returns the number of deleted rows per entity kind.
    """
    deleted: dict[str, int] = {}
    for kind in _ROLLBACK_ORDER:
        deleted[kind.value] = store.delete_by_field(kind, "import_log_id", import_log_id)
    logger.info("import_rolled_back", import_log_id=import_log_id, **deleted)
    return deleted


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

_TEMPLATE_EXAMPLES: dict[ImportType, dict[str, str]] = {
    ImportType.COMPANIES: {
        "name": "ACME SL", "tax_id": "B12345678", "website": "https://acme.com",
        "sector": "Technology", "location": "Madrid", "revenue": "1000000",
        "employees": "50", "description": "Industrial software",
    },
    ImportType.CONTACTS: {
        "first_name": "Juan", "last_name": "Garcia", "email": "juan@acme.com",
        "phone": "+34600000000", "position": "CEO", "company_name": "ACME SL",
        "company_tax_id": "B12345678", "company_website": "https://acme.com",
        "linkedin": "https://linkedin.com/in/juan", "notes": "Priority client",
    },
    ImportType.DEALS: {
        "title": "Sale of ACME SL", "deal_type": "sale", "company_name": "ACME SL",
        "company_tax_id": "B12345678", "sector": "Technology", "value": "500000",
        "stage": "prospect", "start_date": "2024-01-15",
        "description": "Sell-side mandate, software company",
    },
    ImportType.CAMPAIGN_CONTACTS: {
        "first_name": "Maria", "last_name": "Lopez", "email": "maria@xyz.com",
        "phone": "+34600000001", "position": "CFO", "company_name": "XYZ Corp",
        "company_website": "https://xyz.com", "sector": "Services",
        "linkedin": "https://linkedin.com/in/maria", "notes": "",
    },
}


def _quote(value: str) -> str:
    if any(ch in value for ch in ',"'):
        return '"' + value.replace('"', '""') + '"'
    return value


def template_csv(import_type: ImportType) -> str:
    """Header row plus one example row for *import_type*."""
    fields = alias_table(import_type).field_names
    example: dict[str, Any] = _TEMPLATE_EXAMPLES[import_type]
    header = ",".join(fields)
    row = ",".join(_quote(str(example.get(f, ""))) for f in fields)
    return f"{header}\n{row}\n"
