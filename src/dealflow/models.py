"""Value types shared by the import pipeline and the entity resolver.

Canonical rows travel between stages as ``dict[str, str]``; once a row has
passed validation it is converted into a typed per-kind record
(:class:`CompanyRecord`, :class:`ContactRecord`, :class:`DealRecord`) so the
resolver never works with loosely-typed maps.
"""

from __future__ import annotations

import math
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from dealflow.config import Settings


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class EntityKind(str, Enum):
    COMPANY = "company"
    CONTACT = "contact"
    DEAL = "deal"
    CAMPAIGN_MEMBERSHIP = "campaign_membership"


class ImportType(str, Enum):
    """The kind of file being imported; selects the alias table and validator."""

    COMPANIES = "companies"
    CONTACTS = "contacts"
    DEALS = "deals"
    CAMPAIGN_CONTACTS = "campaign_contacts"

    @property
    def entity_kind(self) -> EntityKind:
        if self is ImportType.COMPANIES:
            return EntityKind.COMPANY
        if self is ImportType.DEALS:
            return EntityKind.DEAL
        return EntityKind.CONTACT


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class DuplicateStrategy(str, Enum):
    SKIP = "skip"
    UPDATE = "update"
    CREATE_NEW = "create_new"


class MatchTier(str, Enum):
    EXACT = "exact"
    NORMALIZED = "normalized"
    FUZZY_DOMAIN = "fuzzy_domain"


class ResolutionOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


class RowStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    message: str
    severity: Severity


@dataclass(frozen=True)
class ValidationResult:
    issues: tuple[ValidationIssue, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity is Severity.ERROR]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity is Severity.WARNING]


# ---------------------------------------------------------------------------
# Configuration and results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ImportConfig:
    """Caller-chosen settings for one batch."""

    duplicate_strategy: DuplicateStrategy = DuplicateStrategy.SKIP
    auto_create_related_entities: bool = True
    import_batch_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    import_log_id: str | None = None
    campaign_id: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> ImportConfig:
        """Build a config from application defaults, then apply *overrides*."""
        values: dict[str, Any] = {
            "duplicate_strategy": DuplicateStrategy(settings.default_duplicate_strategy),
            "auto_create_related_entities": settings.auto_create_related_entities,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def tags(self) -> dict[str, str | None]:
        """Traceability columns written on every inserted entity."""
        return {"import_batch_id": self.import_batch_id, "import_log_id": self.import_log_id}


@dataclass(frozen=True)
class MatchCandidate:
    entity_kind: EntityKind
    entity_ref: str
    tier: MatchTier


@dataclass(frozen=True)
class Resolution:
    outcome: ResolutionOutcome
    entity_ref: str
    match: MatchCandidate | None = None
    parent_ref: str | None = None


@dataclass(frozen=True)
class ImportRowResult:
    display_name: str
    status: RowStatus
    message: str
    row_index: int
    entity_ref: str | None = None
    # created, created_duplicate, updated, duplicate_skipped,
    # unresolved_parent, validation or persistence
    reason: str = ""


# ---------------------------------------------------------------------------
# Typed records
# ---------------------------------------------------------------------------


def to_float(value: str | None) -> float | None:
    """Parse a cleaned numeric string, returning None unless it is a finite number."""
    if not value:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _opt(row: Mapping[str, str], key: str) -> str | None:
    value = row.get(key, "")
    return value or None


def _compact(values: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


@dataclass(frozen=True)
class CompanyRecord:
    name: str
    tax_id: str | None = None
    website: str | None = None
    sector: str | None = None
    location: str | None = None
    revenue: float | None = None
    employees: int | None = None
    description: str | None = None

    @classmethod
    def from_canonical(cls, row: Mapping[str, str]) -> CompanyRecord:
        employees = to_float(row.get("employees"))
        return cls(
            name=row.get("name", ""),
            tax_id=_opt(row, "tax_id"),
            website=_opt(row, "website"),
            sector=_opt(row, "sector"),
            location=_opt(row, "location"),
            revenue=to_float(row.get("revenue")),
            employees=int(employees) if employees is not None else None,
            description=_opt(row, "description"),
        )

    @classmethod
    def parent_of(cls, row: Mapping[str, str]) -> CompanyRecord | None:
        """Build the parent company reference carried by a contact or deal row."""
        name = row.get("company_name", "")
        if not name:
            return None
        return cls(
            name=name,
            tax_id=_opt(row, "company_tax_id"),
            website=_opt(row, "company_website"),
            sector=_opt(row, "sector"),
        )

    def to_fields(self) -> dict[str, Any]:
        return _compact({
            "name": self.name,
            "tax_id": self.tax_id,
            "website": self.website,
            "sector": self.sector,
            "location": self.location,
            "revenue": self.revenue,
            "employees": self.employees,
            "description": self.description,
        })


@dataclass(frozen=True)
class ContactRecord:
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    position: str | None = None
    linkedin: str | None = None
    notes: str | None = None
    company: CompanyRecord | None = None

    @classmethod
    def from_canonical(cls, row: Mapping[str, str]) -> ContactRecord:
        return cls(
            first_name=_opt(row, "first_name"),
            last_name=_opt(row, "last_name"),
            email=_opt(row, "email"),
            phone=_opt(row, "phone"),
            position=_opt(row, "position"),
            linkedin=_opt(row, "linkedin"),
            notes=_opt(row, "notes"),
            company=CompanyRecord.parent_of(row),
        )

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    def to_fields(self) -> dict[str, Any]:
        return _compact({
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "position": self.position,
            "linkedin": self.linkedin,
            "notes": self.notes,
        })


@dataclass(frozen=True)
class DealRecord:
    title: str
    deal_type: str
    stage: str
    value: float | None = None
    start_date: str | None = None
    description: str | None = None
    sector: str | None = None
    company: CompanyRecord | None = None

    @classmethod
    def from_canonical(cls, row: Mapping[str, str]) -> DealRecord:
        return cls(
            title=row.get("title", ""),
            deal_type=row.get("deal_type", ""),
            stage=row.get("stage", ""),
            value=to_float(row.get("value")),
            start_date=_opt(row, "start_date"),
            description=_opt(row, "description"),
            sector=_opt(row, "sector"),
            company=CompanyRecord.parent_of(row),
        )

    def to_fields(self) -> dict[str, Any]:
        return _compact({
            "title": self.title,
            "deal_type": self.deal_type,
            "stage": self.stage,
            "value": self.value,
            "start_date": self.start_date,
            "description": self.description,
            "sector": self.sector,
        })
