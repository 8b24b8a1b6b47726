"""Exception taxonomy for the bulk import pipeline.

Structural errors abort a file before any row is touched.  Everything else
is row-scoped and ends up as an error entry in the import result list.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dealflow.models import ValidationResult


class ImportPipelineError(Exception):
    """Base class for all import pipeline errors."""


class StructuralError(ImportPipelineError):
    """The file cannot be imported at all (no header, no data, unreadable)."""


class RowValidationError(ImportPipelineError):
    """A row failed validation with at least one error-severity issue."""

    def __init__(self, result: ValidationResult) -> None:
        self.result = result
        messages = "; ".join(f"{i.field}: {i.message}" for i in result.errors)
        super().__init__(messages or "row failed validation")


class PersistenceError(ImportPipelineError):
    """An entity store lookup or write failed."""


class UnresolvedParentError(ImportPipelineError):
    """A child row references a company that does not exist and may not be created."""
