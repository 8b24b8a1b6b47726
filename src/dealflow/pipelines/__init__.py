"""Bulk import pipeline: parse, normalize, validate, resolve, report."""

from __future__ import annotations

from dealflow.pipelines.aliases import (
    ALIAS_TABLES,
    alias_table,
)
from dealflow.pipelines.bulk_import import (
    import_file,
    import_rows,
)
from dealflow.pipelines.normalizer import (
    defaulted_fields,
    normalize,
    to_raw_row,
)
from dealflow.pipelines.parser import (
    parse,
    split_line,
)
from dealflow.pipelines.tracking import (
    calculate_stats,
    complete_import_log,
    create_import_log,
    results_to_frame,
    rollback_import,
    template_csv,
    write_report,
)
from dealflow.pipelines.validator import (
    require_valid,
    validate,
)

__all__ = [
    # Parsing and mapping
    "ALIAS_TABLES",
    "alias_table",
    "defaulted_fields",
    "normalize",
    "parse",
    "split_line",
    "to_raw_row",
    # Validation
    "require_valid",
    "validate",
    # Orchestration
    "import_file",
    "import_rows",
    # Tracking
    "calculate_stats",
    "complete_import_log",
    "create_import_log",
    "results_to_frame",
    "rollback_import",
    "template_csv",
    "write_report",
]
