"""Field validation for canonical rows.

Every check produces an issue of severity ``error`` (the row is rejected)
or ``warning`` (the row proceeds with its value as given).  Optional
fields pass trivially when empty.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from urllib.parse import urlsplit

from dealflow.errors import RowValidationError
from dealflow.models import EntityKind, Severity, ValidationIssue, ValidationResult

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")
PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{1,14}$")
TAX_ID_PATTERN = re.compile(r"^[A-Z]\d{8}$")
URL_PATTERN = re.compile(r"^https?://\S+", re.IGNORECASE)

_PHONE_FORMATTING = re.compile(r"[\s\-().]")

DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%Y/%m/%d", "%d.%m.%Y")

MIN_NAME_LENGTH = 2


# ---------------------------------------------------------------------------
# Single-value checks
# ---------------------------------------------------------------------------

def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value))


def is_valid_phone(value: str) -> bool:
    return bool(PHONE_PATTERN.match(_PHONE_FORMATTING.sub("", value)))


def is_valid_tax_id(value: str) -> bool:
    return bool(TAX_ID_PATTERN.match(value.upper()))


def is_valid_url(value: str) -> bool:
    if not URL_PATTERN.match(value):
        return False
    try:
        return bool(urlsplit(value).hostname)
    except ValueError:
        return False


def is_valid_date(value: str) -> bool:
    for fmt in DATE_FORMATS:
        try:
            datetime.strptime(value, fmt)
        except ValueError:
            continue
        return True
    return False


def is_number(value: str) -> bool:
    """True for finite decimal numbers; NaN and infinities are rejected."""
    try:
        return math.isfinite(float(value))
    except ValueError:
        return False


# ---------------------------------------------------------------------------
# Rule tables
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FieldRule:
    """A format check applied to one canonical field when it has a value."""

    field: str
    check: Callable[[str], bool]
    message: str
    severity: Severity


def _warn(field: str, check: Callable[[str], bool], message: str) -> FieldRule:
    return FieldRule(field, check, message, Severity.WARNING)


def _error(field: str, check: Callable[[str], bool], message: str) -> FieldRule:
    return FieldRule(field, check, message, Severity.ERROR)


_TAX_ID_MESSAGE = "Tax id should be one letter followed by 8 digits (e.g. B12345678)"
_URL_MESSAGE = "URL should start with http:// or https://"

_FORMAT_RULES: MappingProxyType[EntityKind, tuple[FieldRule, ...]] = MappingProxyType({
    EntityKind.COMPANY: (
        _warn("tax_id", is_valid_tax_id, _TAX_ID_MESSAGE),
        _warn("website", is_valid_url, _URL_MESSAGE),
        _error("revenue", is_number, "Revenue must be a number"),
        _warn("employees", is_number, "Employee count is not a number"),
    ),
    EntityKind.CONTACT: (
        _error("email", is_valid_email, "Email address is not valid"),
        _warn("phone", is_valid_phone, "Phone should be in E.164 format (e.g. +34600000000)"),
        _warn("linkedin", is_valid_url, _URL_MESSAGE),
        _warn("company_tax_id", is_valid_tax_id, _TAX_ID_MESSAGE),
        _warn("company_website", is_valid_url, _URL_MESSAGE),
    ),
    EntityKind.DEAL: (
        _error("value", is_number, "Deal value must be a number"),
        _warn("company_tax_id", is_valid_tax_id, _TAX_ID_MESSAGE),
        _warn("start_date", is_valid_date, "Date is not valid; use YYYY-MM-DD"),
    ),
})

# Fields whose absence is an error, with the minimum length they must reach
_REQUIRED: MappingProxyType[EntityKind, tuple[tuple[str, int], ...]] = MappingProxyType({
    EntityKind.COMPANY: (("name", MIN_NAME_LENGTH),),
    EntityKind.CONTACT: (("email", 1),),
    EntityKind.DEAL: (("title", MIN_NAME_LENGTH), ("company_name", MIN_NAME_LENGTH)),
})


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def validate(row: Mapping[str, str], kind: EntityKind) -> ValidationResult:
    """Validate a canonical row for the given entity kind."""
    issues: list[ValidationIssue] = []

    for field, min_length in _REQUIRED.get(kind, ()):
        value = row.get(field, "").strip()
        if not value:
            issues.append(ValidationIssue(field, f"{field} is required", Severity.ERROR))
        elif len(value) < min_length:
            issues.append(ValidationIssue(
                field, f"{field} must be at least {min_length} characters", Severity.ERROR,
            ))

    for rule in _FORMAT_RULES.get(kind, ()):
        value = row.get(rule.field, "").strip()
        if value and not rule.check(value):
            issues.append(ValidationIssue(rule.field, rule.message, rule.severity))

    if kind is EntityKind.DEAL:
        value = row.get("value", "")
        if value and is_number(value) and float(value) < 0:
            issues.append(ValidationIssue("value", "Deal value cannot be negative", Severity.ERROR))

    return ValidationResult(tuple(issues))


def require_valid(row: Mapping[str, str], kind: EntityKind) -> ValidationResult:
    """Validate *row* and raise :class:`RowValidationError` if it has errors."""
    result = validate(row, kind)
    if not result.is_valid:
        raise RowValidationError(result)
    return result
