#!/usr/bin/env python3
"""CLI script to undo a bulk import by its import log id."""

from __future__ import annotations

import structlog
import typer

from dealflow.config import get_settings
from dealflow.db import execute_query, get_connection
from dealflow.entity_resolution.store import PostgresEntityStore
from dealflow.pipelines.tracking import rollback_import

logger = structlog.get_logger(__name__)
app = typer.Typer()


@app.command()
def main(
    import_log_id: str = typer.Argument(help="Id of the import_logs row to undo"),
) -> None:
    """Delete every deal, contact and company created by one import."""
    settings = get_settings()
    conn = get_connection(settings)

    try:
        deleted = rollback_import(PostgresEntityStore(conn), import_log_id)
        execute_query(
            conn,
            "UPDATE import_logs SET status = 'rolled_back' WHERE id = %s",
            (import_log_id,),
        )
        conn.commit()
        logger.info("rollback_complete", import_log_id=import_log_id, **deleted)
    finally:
        conn.close()


if __name__ == "__main__":
    app()
