"""Bulk import orchestrator.

Drives one file end to end, row by row and in file order:

    normalize -> validate -> resolve -> result

A row that fails validation or whose resolution raises is recorded as an
error and the batch moves on; one bad row never aborts the rest of the
file.  There are no retries and no cross-row transaction.  Batches in the
same process are serialized so rows naming the same unseen company are
never resolved concurrently.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping, Sequence

import structlog

from dealflow.entity_resolution.resolver import resolve_row
from dealflow.entity_resolution.store import EntityStore
from dealflow.errors import RowValidationError, UnresolvedParentError
from dealflow.models import (
    EntityKind,
    ImportConfig,
    ImportRowResult,
    ImportType,
    Resolution,
    ResolutionOutcome,
    RowStatus,
    ValidationResult,
)
from dealflow.pipelines.aliases import AliasTable, alias_table
from dealflow.pipelines.normalizer import defaulted_fields, normalize
from dealflow.pipelines.parser import parse
from dealflow.pipelines.tracking import calculate_stats
from dealflow.pipelines.validator import require_valid

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[int, int], None]

_BATCH_LOCK = threading.Lock()


def display_name(row: Mapping[str, str], import_type: ImportType, row_index: int) -> str:
    """Human-readable label for a row in the import report."""
    if import_type is ImportType.COMPANIES:
        name = row.get("name", "")
    elif import_type is ImportType.DEALS:
        name = row.get("title", "")
    else:
        full_name = " ".join(p for p in (row.get("first_name"), row.get("last_name")) if p)
        name = full_name or row.get("email", "")
    return name or f"Row {row_index + 1}"


def _with_warnings(message: str, validation: ValidationResult) -> str:
    if not validation.warnings:
        return message
    details = "; ".join(f"{w.field}: {w.message}" for w in validation.warnings)
    return f"{message} (warnings: {details})"


def _success_result(
    resolution: Resolution,
    name: str,
    row_index: int,
    validation: ValidationResult,
) -> ImportRowResult:
    match = resolution.match
    tier = match.tier.value if match else ""

    if resolution.outcome is ResolutionOutcome.SKIPPED:
        return ImportRowResult(
            name, RowStatus.SKIPPED,
            f"Already exists (matched by {tier}); skipped",
            row_index, resolution.entity_ref, "duplicate_skipped",
        )
    if resolution.outcome is ResolutionOutcome.UPDATED:
        message, reason = f"Updated existing record (matched by {tier})", "updated"
    elif match is not None:
        message, reason = f"Created new record alongside existing match ({tier})", "created_duplicate"
    else:
        message, reason = "Created new record", "created"

    return ImportRowResult(
        name, RowStatus.SUCCESS, _with_warnings(message, validation),
        row_index, resolution.entity_ref, reason,
    )


def import_row(
    raw_row: Mapping[str, str],
    row_index: int,
    import_type: ImportType,
    table: AliasTable,
    kind: EntityKind,
    config: ImportConfig,
    store: EntityStore,
) -> ImportRowResult:
    """Run one row through normalization, validation and resolution."""
    canonical = normalize(raw_row, table)
    name = display_name(canonical, import_type, row_index)

    try:
        validation = require_valid(canonical, kind)
    except RowValidationError as e:
        logger.warning(
            "row_validation_failed",
            row=row_index,
            fields=[i.field for i in e.result.errors],
        )
        return ImportRowResult(name, RowStatus.ERROR, str(e), row_index, reason="validation")

    try:
        resolution = resolve_row(
            store, import_type, canonical, config,
            defaulted=defaulted_fields(raw_row, table),
        )
    except UnresolvedParentError as e:
        logger.warning("row_parent_unresolved", row=row_index, error=str(e))
        return ImportRowResult(
            name, RowStatus.ERROR, str(e), row_index, reason="unresolved_parent",
        )
    except Exception as e:
        logger.warning("row_persistence_failed", row=row_index, error=str(e))
        return ImportRowResult(
            name, RowStatus.ERROR, str(e) or type(e).__name__, row_index,
            reason="persistence",
        )

    return _success_result(resolution, name, row_index, validation)


def import_rows(
    rows: Sequence[Mapping[str, str]],
    import_type: ImportType,
    config: ImportConfig,
    store: EntityStore,
    *,
    on_progress: ProgressCallback | None = None,
) -> list[ImportRowResult]:
    """Import already-parsed raw rows; returns one result per row, in order.

    *on_progress* is called with ``(rows_processed, total_rows)`` after
    every row.
    """
    if import_type is ImportType.CAMPAIGN_CONTACTS and not config.campaign_id:
        msg = "Campaign contact imports require a campaign_id"
        raise ValueError(msg)

    table = alias_table(import_type)
    kind = import_type.entity_kind
    total = len(rows)
    results: list[ImportRowResult] = []

    with _BATCH_LOCK:
        logger.info(
            "bulk_import_started",
            import_type=import_type.value,
            rows=total,
            strategy=config.duplicate_strategy.value,
            batch_id=config.import_batch_id,
        )
        for index, raw_row in enumerate(rows):
            results.append(
                import_row(raw_row, index, import_type, table, kind, config, store),
            )
            if on_progress is not None:
                on_progress(index + 1, total)

    logger.info(
        "bulk_import_complete",
        import_type=import_type.value,
        batch_id=config.import_batch_id,
        **calculate_stats(results),
    )
    return results


def import_file(
    data: bytes | str,
    import_type: ImportType,
    config: ImportConfig,
    store: EntityStore,
    *,
    on_progress: ProgressCallback | None = None,
    max_bytes: int | None = None,
) -> list[ImportRowResult]:
    """Parse *data* and import every row.

    Raises
    ------
    StructuralError
        Before any row is processed, if the file has no header or no data.
    """
    parsed = parse(data, max_bytes=max_bytes)
    return import_rows(parsed.rows, import_type, config, store, on_progress=on_progress)
