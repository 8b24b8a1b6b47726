"""Entity resolution layer: match imported rows to stored companies, contacts and deals."""

from __future__ import annotations

from dealflow.entity_resolution.deterministic import (
    extract_domain,
    find_company,
    find_contact,
    find_deal,
    normalize_company_name,
    normalize_text,
)
from dealflow.entity_resolution.resolver import (
    resolve_company,
    resolve_contact,
    resolve_deal,
    resolve_parent_company,
    resolve_row,
)
from dealflow.entity_resolution.store import (
    EntityStore,
    InMemoryEntityStore,
    PostgresEntityStore,
)

__all__ = [
    "EntityStore",
    "InMemoryEntityStore",
    "PostgresEntityStore",
    "extract_domain",
    "find_company",
    "find_contact",
    "find_deal",
    "normalize_company_name",
    "normalize_text",
    "resolve_company",
    "resolve_contact",
    "resolve_deal",
    "resolve_parent_company",
    "resolve_row",
]
