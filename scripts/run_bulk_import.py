#!/usr/bin/env python3
"""CLI script to import a CSV file of companies, contacts or deals."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from pathlib import Path

import structlog
import typer

from dealflow.config import get_settings
from dealflow.db import get_connection
from dealflow.entity_resolution.store import InMemoryEntityStore, PostgresEntityStore
from dealflow.models import DuplicateStrategy, ImportConfig, ImportType
from dealflow.pipelines.bulk_import import import_rows
from dealflow.pipelines.parser import parse
from dealflow.pipelines.tracking import (
    calculate_stats,
    complete_import_log,
    create_import_log,
    write_report,
)

logger = structlog.get_logger(__name__)
app = typer.Typer()


def _log_progress(current: int, total: int) -> None:
    if current == total or current % 50 == 0:
        logger.info("bulk_import_progress", processed=current, total=total)


@app.command()
def main(
    import_type: ImportType = typer.Argument(help="What the file contains"),
    input_file: Path = typer.Argument(help="UTF-8 CSV file with a header row"),
    strategy: DuplicateStrategy | None = typer.Option(
        None, "--strategy", help="How to handle rows matching an existing record"
    ),
    auto_create: bool | None = typer.Option(
        None, "--auto-create/--no-auto-create",
        help="Create missing parent companies for contact and deal rows",
    ),
    campaign_id: str | None = typer.Option(
        None, "--campaign-id", help="Campaign to attach contacts to (campaign_contacts only)"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Resolve against an empty in-memory store; nothing is written"
    ),
    report: Path | None = typer.Option(None, help="Where to write the itemized CSV report"),
) -> None:
    """Parse, validate and import INPUT_FILE, then write an itemized report."""
    settings = get_settings()
    if strategy is None and import_type is ImportType.CAMPAIGN_CONTACTS:
        strategy = DuplicateStrategy.CREATE_NEW

    parsed = parse(input_file.read_bytes(), max_bytes=settings.max_file_bytes)

    if report is None:
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        report = Path(settings.report_dir) / f"{import_type.value}_{stamp}.csv"

    config = ImportConfig.from_settings(
        settings,
        duplicate_strategy=strategy,
        auto_create_related_entities=auto_create,
        campaign_id=campaign_id,
    )

    if dry_run:
        results = import_rows(
            parsed.rows, import_type, config, InMemoryEntityStore(), on_progress=_log_progress,
        )
        write_report(results, report)
        logger.info("dry_run_complete", **calculate_stats(results))
        return

    conn = get_connection(settings)
    try:
        log_id = create_import_log(conn, import_type, parsed.total_rows, input_file.name, config)
        config = replace(config, import_log_id=log_id)
        conn.commit()

        results = import_rows(
            parsed.rows,
            import_type,
            config,
            PostgresEntityStore(conn),
            on_progress=_log_progress,
        )
        stats = calculate_stats(results)
        complete_import_log(conn, log_id, stats)
        conn.commit()

        write_report(results, report)
        logger.info("bulk_import_finished", import_log_id=log_id, **stats)
    finally:
        conn.close()


if __name__ == "__main__":
    app()
