"""Entity resolution orchestrator.

Resolves one canonical row against the entity store:

  1. For contact and deal rows, resolve (or create) the parent company
     first.  Parent resolution is always find-or-create and ignores the
     row's duplicate strategy.
  2. Run the entity kind's match strategies in fixed order.
  3. No match: insert, tagged with the batch and import log ids.
     Match: apply the duplicate strategy (skip, update or create_new).

Resolution must run strictly row after row within a batch so that a
company created by row N is visible to row N+1.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from dealflow.entity_resolution.deterministic import (
    find_company,
    find_contact,
    find_deal,
    normalize_tax_id,
)
from dealflow.entity_resolution.store import EntityStore
from dealflow.errors import UnresolvedParentError
from dealflow.models import (
    CompanyRecord,
    ContactRecord,
    DealRecord,
    DuplicateStrategy,
    EntityKind,
    ImportConfig,
    ImportType,
    MatchCandidate,
    Resolution,
    ResolutionOutcome,
)

logger = structlog.get_logger(__name__)


def _company_fields(company: CompanyRecord) -> dict[str, Any]:
    fields = company.to_fields()
    if company.tax_id:
        fields["tax_id"] = normalize_tax_id(company.tax_id)
    return fields


def _insert(
    store: EntityStore,
    kind: EntityKind,
    fields: Mapping[str, Any],
    config: ImportConfig,
) -> str:
    row = store.insert(kind, {**fields, **config.tags()})
    logger.info("entity_created", kind=kind.value, entity_id=row["id"])
    return row["id"]


def apply_duplicate_strategy(
    store: EntityStore,
    kind: EntityKind,
    match: MatchCandidate | None,
    fields: Mapping[str, Any],
    config: ImportConfig,
    *,
    parent_ref: str | None = None,
    defaulted: frozenset[str] = frozenset(),
) -> Resolution:
    """Create, skip, update or duplicate depending on *match* and the strategy.

    *defaulted* names fields whose value was injected by the normalizer
    rather than read from the file.  They are written on insert but left
    out of updates, so an existing deal keeps its stage when the file has
    no stage column.
    """
    if match is None:
        entity_id = _insert(store, kind, fields, config)
        return Resolution(ResolutionOutcome.CREATED, entity_id, parent_ref=parent_ref)

    logger.debug(
        "entity_matched",
        kind=kind.value,
        entity_id=match.entity_ref,
        tier=match.tier.value,
        strategy=config.duplicate_strategy.value,
    )

    if config.duplicate_strategy is DuplicateStrategy.SKIP:
        return Resolution(ResolutionOutcome.SKIPPED, match.entity_ref, match, parent_ref)

    if config.duplicate_strategy is DuplicateStrategy.UPDATE:
        partial = {k: v for k, v in fields.items() if k not in defaulted}
        store.update(kind, match.entity_ref, partial)
        return Resolution(ResolutionOutcome.UPDATED, match.entity_ref, match, parent_ref)

    entity_id = _insert(store, kind, fields, config)
    return Resolution(ResolutionOutcome.CREATED, entity_id, match, parent_ref)


# ---------------------------------------------------------------------------
# Per-kind resolution
# ---------------------------------------------------------------------------

def resolve_parent_company(
    store: EntityStore,
    company: CompanyRecord | None,
    config: ImportConfig,
) -> str | None:
    """Find the company a contact or deal row refers to, creating it if allowed.

    Returns ``None`` when the row names no company, or names one that does
    not exist while auto-creation is disabled.
    """
    if company is None:
        return None

    match = find_company(store, company.name, company.tax_id, company.website)
    if match is not None:
        return match.entity_ref

    if not config.auto_create_related_entities:
        logger.warning("parent_company_not_found", company=company.name)
        return None

    return _insert(store, EntityKind.COMPANY, _company_fields(company), config)


def resolve_company(store: EntityStore, record: CompanyRecord, config: ImportConfig) -> Resolution:
    match = find_company(store, record.name, record.tax_id, record.website)
    return apply_duplicate_strategy(
        store, EntityKind.COMPANY, match, _company_fields(record), config,
    )


def resolve_contact(store: EntityStore, record: ContactRecord, config: ImportConfig) -> Resolution:
    company_id = resolve_parent_company(store, record.company, config)

    fields = record.to_fields()
    if company_id is not None:
        fields["company_id"] = company_id

    match = find_contact(store, record.email, record.full_name, company_id)
    return apply_duplicate_strategy(
        store, EntityKind.CONTACT, match, fields, config, parent_ref=company_id,
    )


def resolve_deal(
    store: EntityStore,
    record: DealRecord,
    config: ImportConfig,
    *,
    defaulted: frozenset[str] = frozenset(),
) -> Resolution:
    company_id = resolve_parent_company(store, record.company, config)
    if company_id is None:
        name = record.company.name if record.company else ""
        msg = f"Company {name!r} not found and auto-creation of related entities is disabled"
        raise UnresolvedParentError(msg)

    fields = {**record.to_fields(), "company_id": company_id}
    match = find_deal(store, record.title, company_id)
    return apply_duplicate_strategy(
        store, EntityKind.DEAL, match, fields, config,
        parent_ref=company_id, defaulted=defaulted,
    )


def ensure_campaign_membership(
    store: EntityStore,
    contact_id: str,
    campaign_id: str,
    config: ImportConfig,
) -> str:
    """Link a contact to a campaign once; the (contact, campaign) pair is the key."""
    for row in store.find_by_field(EntityKind.CAMPAIGN_MEMBERSHIP, "contact_id", contact_id):
        if row.get("campaign_id") == campaign_id:
            return row["id"]
    return _insert(
        store,
        EntityKind.CAMPAIGN_MEMBERSHIP,
        {"campaign_id": campaign_id, "contact_id": contact_id},
        config,
    )


def resolve_campaign_contact(
    store: EntityStore,
    record: ContactRecord,
    config: ImportConfig,
) -> Resolution:
    if not config.campaign_id:
        msg = "Campaign contact imports require a campaign_id"
        raise ValueError(msg)
    resolution = resolve_contact(store, record, config)
    ensure_campaign_membership(store, resolution.entity_ref, config.campaign_id, config)
    return resolution


def resolve_row(
    store: EntityStore,
    import_type: ImportType,
    row: Mapping[str, str],
    config: ImportConfig,
    *,
    defaulted: frozenset[str] = frozenset(),
) -> Resolution:
    """Resolve one validated canonical row according to its import type.

    *defaulted* is passed through to deal updates; see
    :func:`apply_duplicate_strategy`.
    """
    if import_type is ImportType.COMPANIES:
        return resolve_company(store, CompanyRecord.from_canonical(row), config)
    if import_type is ImportType.CONTACTS:
        return resolve_contact(store, ContactRecord.from_canonical(row), config)
    if import_type is ImportType.DEALS:
        return resolve_deal(store, DealRecord.from_canonical(row), config, defaulted=defaulted)
    return resolve_campaign_contact(store, ContactRecord.from_canonical(row), config)
