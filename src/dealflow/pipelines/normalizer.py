"""Map raw rows onto canonical field names and canonicalize values.

For each canonical field the alias list is scanned in priority order and
the first header carrying a non-empty value wins; later aliases are never
consulted.  Headers are matched case-insensitively and exactly.  Headers
that match no alias are ignored.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

from dealflow.pipelines.aliases import AliasTable, FieldKind, FieldSpec

_WHITESPACE = re.compile(r"\s+")
_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_EMAIL_NAME_SEPARATORS = re.compile(r"[._\-]+")


def _first_alias_value(row: Mapping[str, str], aliases: tuple[str, ...]) -> str | None:
    for alias in aliases:
        value = row.get(alias)
        if value and value.strip():
            return value.strip()
    return None


def canonicalize_categorical(spec: FieldSpec, value: str) -> str:
    """Lower-case, underscore whitespace, resolve synonyms, fall back to the default."""
    token = _WHITESPACE.sub("_", value.strip().lower())
    token = dict(spec.synonyms).get(token, token)
    if token not in spec.choices:
        return spec.default or ""
    return token


def canonicalize_numeric(value: str) -> str:
    """Strip currency symbols and separators, keeping digits, ``.`` and ``-``.

    If nothing numeric is left, the original text is returned so the
    validator can report it.
    """
    cleaned = _NON_NUMERIC.sub("", value)
    return cleaned if cleaned else value


def canonicalize(spec: FieldSpec, value: str) -> str:
    if spec.kind is FieldKind.CATEGORICAL:
        return canonicalize_categorical(spec, value)
    if spec.kind is FieldKind.NUMERIC:
        return canonicalize_numeric(value)
    if spec.kind is FieldKind.IDENTIFIER:
        return value.upper()
    if spec.kind is FieldKind.EMAIL:
        return _WHITESPACE.sub("", value).lower()
    return value


def name_from_email(email: str) -> str | None:
    """Guess a display name from an email local part (``maria.lopez`` -> ``Maria Lopez``)."""
    local = email.split("@", 1)[0]
    if not re.search(r"[a-zA-Z]", local):
        return None
    words = _EMAIL_NAME_SEPARATORS.sub(" ", local).split()
    return " ".join(w.capitalize() for w in words) or None


def _lower_keys(raw_row: Mapping[str, str]) -> dict[str, str]:
    return {key.strip().lower(): value for key, value in raw_row.items()}


def normalize(raw_row: Mapping[str, str], table: AliasTable) -> dict[str, str]:
    """Map *raw_row* onto the canonical fields of *table*.

    A field is present in the result only if one of its aliases carried a
    value, except categorical fields, which always receive their default.
    """
    row = _lower_keys(raw_row)
    canonical: dict[str, str] = {}

    for spec in table.fields:
        value = _first_alias_value(row, spec.aliases)
        if value is None:
            if spec.default is not None:
                canonical[spec.name] = spec.default
            continue
        canonical[spec.name] = canonicalize(spec, value)

    if table.derive_first_name_from_email and not canonical.get("first_name"):
        email = canonical.get("email")
        derived = name_from_email(email) if email else None
        if derived:
            canonical["first_name"] = derived

    return canonical


def defaulted_fields(raw_row: Mapping[str, str], table: AliasTable) -> frozenset[str]:
    """Fields whose canonical value was injected as a default, not read from *raw_row*.

    Updates of existing entities leave these out so a file without a stage
    column never resets a stored stage to the default.
    """
    row = _lower_keys(raw_row)
    return frozenset(
        spec.name for spec in table.fields
        if spec.default is not None and _first_alias_value(row, spec.aliases) is None
    )


def to_raw_row(canonical: Mapping[str, str]) -> dict[str, str]:
    """Render a canonical row back into raw form, using field names as headers."""
    return {name: value for name, value in canonical.items()}
