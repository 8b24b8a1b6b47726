"""Deterministic (exact-match) entity resolution strategies.

Provides the normalised match keys (company name, person name, deal
title, website domain) and one lookup function per strategy.  Each
lookup returns a :class:`MatchCandidate` or ``None``; the resolver tries
them in a fixed order and the first hit wins.  There is no scoring.
"""

from __future__ import annotations

import re
from urllib.parse import urlsplit

from unidecode import unidecode

from dealflow.entity_resolution.store import EntityStore
from dealflow.models import EntityKind, MatchCandidate, MatchTier

# ---------------------------------------------------------------------------
# Legal forms to strip from the end of company names.  Spanish forms come
# first so "S.L.U." is not read as "S.L." followed by a stray "U".
# ---------------------------------------------------------------------------

_LEGAL_FORM_PATTERN = re.compile(
    r"[\s,]+("
    r"s\.?\s?l\.?\s?u|s\.?\s?a\.?\s?u|s\.?\s?l\.?\s?l|s\.?\s?l|s\.?\s?a|s\.?\s?c|"
    r"sociedad limitada|sociedad anonima|"
    r"limited|ltd|inc|incorporated|llc|l\.l\.c|plc|p\.l\.c|"
    r"corp|corporation|co|company|gmbh|ag|sas|sarl|bv|b\.v|nv|n\.v"
    r")\.?$",
)


def normalize_text(text: str) -> str:
    """Transliterate to ASCII, lowercase, drop punctuation and collapse whitespace."""
    text = unidecode(text).lower()
    text = re.sub(r"[^a-z0-9\s]", "", text)
    return re.sub(r"\s+", " ", text).strip()


def normalize_company_name(name: str) -> str:
    """Normalise a company name for deterministic matching.

    Steps:
      1. Transliterate Unicode to ASCII (e.g. é → e).
      2. Lowercase.
      3. Strip trailing legal forms (S.A., S.L., S.L.U., Ltd, Inc, ...),
         repeatedly, so "Acme Corp S.A." loses both.
      4. Remove non-alphanumeric characters and collapse whitespace.
    """
    text = unidecode(name).lower().strip()

    while True:
        stripped = _LEGAL_FORM_PATTERN.sub("", text).strip()
        if stripped == text:
            break
        text = stripped

    return normalize_text(text)


def normalize_tax_id(tax_id: str) -> str:
    return re.sub(r"[\s\-.]", "", tax_id).upper()


def _hostname(url: str) -> str | None:
    try:
        return urlsplit(url).hostname
    except ValueError:
        # Malformed netloc, e.g. an unclosed IPv6 bracket
        return None


def extract_domain(url: str) -> str | None:
    """Return the hostname of *url* without a leading ``www.``.

    Bare domains such as ``acme.com/about`` are accepted as well.
    """
    value = url.strip()
    if not value:
        return None
    host = _hostname(value) or _hostname(f"//{value}")
    if not host or "." not in host:
        return None
    return host.removeprefix("www.")


# ---------------------------------------------------------------------------
# Company strategies
# ---------------------------------------------------------------------------

def match_company_by_tax_id(store: EntityStore, tax_id: str | None) -> MatchCandidate | None:
    """Strategy 1: exact match on the normalised tax id."""
    if not tax_id:
        return None
    rows = store.find_by_field(EntityKind.COMPANY, "tax_id", normalize_tax_id(tax_id))
    if rows:
        return MatchCandidate(EntityKind.COMPANY, rows[0]["id"], MatchTier.EXACT)
    return None


def match_company_by_name(store: EntityStore, name: str | None) -> MatchCandidate | None:
    """Strategy 2: equality of normalised names against every stored company."""
    if not name:
        return None
    norm = normalize_company_name(name)
    if not norm:
        return None
    for row in store.find_all(EntityKind.COMPANY):
        if normalize_company_name(row.get("name") or "") == norm:
            return MatchCandidate(EntityKind.COMPANY, row["id"], MatchTier.NORMALIZED)
    return None


def match_company_by_domain(store: EntityStore, website: str | None) -> MatchCandidate | None:
    """Strategy 3: the row's website domain appears inside a stored website."""
    if not website:
        return None
    domain = extract_domain(website)
    if domain is None:
        return None
    rows = store.find_containing(EntityKind.COMPANY, "website", domain)
    if rows:
        return MatchCandidate(EntityKind.COMPANY, rows[0]["id"], MatchTier.FUZZY_DOMAIN)
    return None


def find_company(
    store: EntityStore,
    name: str | None,
    tax_id: str | None = None,
    website: str | None = None,
) -> MatchCandidate | None:
    """Try tax id, then normalised name, then website domain."""
    return (
        match_company_by_tax_id(store, tax_id)
        or match_company_by_name(store, name)
        or match_company_by_domain(store, website)
    )


# ---------------------------------------------------------------------------
# Contact strategies
# ---------------------------------------------------------------------------

def match_contact_by_email(store: EntityStore, email: str | None) -> MatchCandidate | None:
    """Strategy 1: exact match on the lower-cased email."""
    if not email:
        return None
    rows = store.find_by_field(EntityKind.CONTACT, "email", email.strip().lower())
    if rows:
        return MatchCandidate(EntityKind.CONTACT, rows[0]["id"], MatchTier.EXACT)
    return None


def match_contact_by_name(
    store: EntityStore,
    full_name: str,
    company_id: str | None,
) -> MatchCandidate | None:
    """Strategy 2: normalised full name among contacts of the same company only."""
    if not company_id or not full_name:
        return None
    norm = normalize_text(full_name)
    for row in store.find_by_field(EntityKind.CONTACT, "company_id", company_id):
        stored = f"{row.get('first_name') or ''} {row.get('last_name') or ''}"
        if normalize_text(stored) == norm:
            return MatchCandidate(EntityKind.CONTACT, row["id"], MatchTier.NORMALIZED)
    return None


def find_contact(
    store: EntityStore,
    email: str | None,
    full_name: str,
    company_id: str | None,
) -> MatchCandidate | None:
    return match_contact_by_email(store, email) or match_contact_by_name(
        store, full_name, company_id,
    )


# ---------------------------------------------------------------------------
# Deal strategy
# ---------------------------------------------------------------------------

def find_deal(store: EntityStore, title: str, company_id: str | None) -> MatchCandidate | None:
    """Normalised title among deals of the same company only."""
    if not company_id or not title:
        return None
    norm = normalize_text(title)
    for row in store.find_by_field(EntityKind.DEAL, "company_id", company_id):
        if normalize_text(row.get("title") or "") == norm:
            return MatchCandidate(EntityKind.DEAL, row["id"], MatchTier.NORMALIZED)
    return None
