"""Tests for the bulk import orchestrator, end to end on the in-memory store."""

from __future__ import annotations

import dataclasses
import threading

import pytest

from dealflow.entity_resolution.store import InMemoryEntityStore
from dealflow.errors import PersistenceError, StructuralError
from dealflow.models import EntityKind, ImportType, RowStatus
from dealflow.pipelines.bulk_import import display_name, import_file, import_rows


class _FailingStore(InMemoryEntityStore):
    """Raises on inserting one particular contact email."""

    def __init__(self, bad_email: str) -> None:
        super().__init__()
        self.bad_email = bad_email

    def insert(self, kind, record):
        if kind is EntityKind.CONTACT and record.get("email") == self.bad_email:
            msg = "insert failed"
            raise PersistenceError(msg)
        return super().insert(kind, record)


# =========================================================================
# display_name
# =========================================================================


class TestDisplayName:
    def test_company(self):
        assert display_name({"name": "Acme"}, ImportType.COMPANIES, 0) == "Acme"

    def test_contact_full_name(self):
        row = {"first_name": "Juan", "last_name": "Garcia", "email": "j@a.com"}
        assert display_name(row, ImportType.CONTACTS, 0) == "Juan Garcia"

    def test_contact_falls_back_to_email(self):
        assert display_name({"email": "j@a.com"}, ImportType.CONTACTS, 0) == "j@a.com"

    def test_falls_back_to_row_number(self):
        assert display_name({}, ImportType.DEALS, 4) == "Row 5"


# =========================================================================
# import_file
# =========================================================================


class TestImportFile:
    """Tests for whole-file imports."""

    def test_mixed_contacts_file(self, store, skip_config, contacts_csv):
        results = import_file(contacts_csv, ImportType.CONTACTS, skip_config, store)

        assert [r.status for r in results] == [
            RowStatus.SUCCESS, RowStatus.ERROR, RowStatus.SUCCESS,
        ]
        assert [r.row_index for r in results] == [0, 1, 2]
        assert results[1].reason == "validation"
        assert "email" in results[1].message

        contacts = store.find_all(EntityKind.CONTACT)
        assert [c["email"] for c in contacts] == ["juan@acme.com", "maria@xyz.com"]
        companies = store.find_all(EntityKind.COMPANY)
        assert [c["name"] for c in companies] == ["Acme, S.L.", "XYZ Corp"]
        assert companies[0]["tax_id"] == "B12345678"

    def test_structural_error_touches_nothing(self, store, skip_config):
        with pytest.raises(StructuralError):
            import_file(b"name,email\n", ImportType.CONTACTS, skip_config, store)
        assert store.find_all(EntityKind.COMPANY) == []

    def test_file_size_limit(self, store, skip_config, contacts_csv):
        with pytest.raises(StructuralError):
            import_file(contacts_csv, ImportType.CONTACTS, skip_config, store, max_bytes=10)


# =========================================================================
# import_rows
# =========================================================================


class TestImportRows:
    """Tests for row-level behaviour of a batch."""

    def test_failing_row_does_not_abort_batch(self, skip_config):
        store = _FailingStore("boom@x.com")
        rows = [
            {"email": "ok1@x.com"},
            {"email": "boom@x.com"},
            {"email": "ok2@x.com"},
        ]
        results = import_rows(rows, ImportType.CONTACTS, skip_config, store)

        assert [r.status for r in results] == [
            RowStatus.SUCCESS, RowStatus.ERROR, RowStatus.SUCCESS,
        ]
        assert results[1].reason == "persistence"
        assert results[1].message == "insert failed"
        assert store.count(EntityKind.CONTACT) == 2

    def test_progress_reported_after_each_row(self, store, skip_config):
        calls = []
        rows = [{"name": "Acme"}, {"name": "X"}, {"name": "Beta"}]
        import_rows(
            rows, ImportType.COMPANIES, skip_config, store,
            on_progress=lambda done, total: calls.append((done, total)),
        )
        assert calls == [(1, 3), (2, 3), (3, 3)]

    def test_same_unseen_company_created_once(self, store, skip_config):
        rows = [
            {"email": "a@newco.com", "empresa": "NewCo SL"},
            {"email": "b@newco.com", "empresa": "NEWCO S.L."},
        ]
        results = import_rows(rows, ImportType.CONTACTS, skip_config, store)

        assert store.count(EntityKind.COMPANY) == 1
        company_id = store.find_all(EntityKind.COMPANY)[0]["id"]
        assert {c["company_id"] for c in store.find_all(EntityKind.CONTACT)} == {company_id}
        assert all(r.reason == "created" for r in results)

    def test_warnings_appended_to_success_message(self, store, skip_config):
        results = import_rows(
            [{"name": "Acme", "cif": "1234"}], ImportType.COMPANIES, skip_config, store,
        )
        assert results[0].status is RowStatus.SUCCESS
        assert "warnings: tax_id" in results[0].message

    def test_malformed_website_only_warns(self, store, skip_config):
        results = import_rows(
            [{"name": "Acme", "website": "http://[acme.com"}],
            ImportType.COMPANIES, skip_config, store,
        )
        assert results[0].status is RowStatus.SUCCESS
        assert results[0].reason == "created"
        assert "warnings: website" in results[0].message
        assert store.count(EntityKind.COMPANY) == 1

    def test_non_finite_deal_value_rejected(self, store, skip_config):
        rows = [{"title": "Sale of Acme", "company": "Acme", "value": "NaN"}]
        results = import_rows(rows, ImportType.DEALS, skip_config, store)
        assert results[0].status is RowStatus.ERROR
        assert results[0].reason == "validation"
        assert store.count(EntityKind.DEAL) == 0

    def test_deal_with_unknown_company_and_no_auto_create(self, store, skip_config):
        config = dataclasses.replace(skip_config, auto_create_related_entities=False)
        rows = [{"titulo": "Sale of Ghost", "empresa": "Ghost Co"}]
        results = import_rows(rows, ImportType.DEALS, config, store)

        assert results[0].status is RowStatus.ERROR
        assert results[0].reason == "unresolved_parent"
        assert store.count(EntityKind.DEAL) == 0

    def test_contact_with_unknown_company_and_no_auto_create(self, store, skip_config):
        config = dataclasses.replace(skip_config, auto_create_related_entities=False)
        results = import_rows(
            [{"email": "a@b.com", "empresa": "Ghost Co"}], ImportType.CONTACTS, config, store,
        )
        assert results[0].status is RowStatus.SUCCESS
        assert "company_id" not in store.find_all(EntityKind.CONTACT)[0]
        assert store.count(EntityKind.COMPANY) == 0

    def test_concurrent_batches_do_not_duplicate_companies(self, store, skip_config):
        def run(email: str) -> None:
            import_rows(
                [{"email": email, "empresa": "Shared Co"}],
                ImportType.CONTACTS, skip_config, store,
            )

        threads = [threading.Thread(target=run, args=(f"u{i}@shared.com",)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert store.count(EntityKind.COMPANY) == 1
        assert store.count(EntityKind.CONTACT) == 4


# =========================================================================
# Re-imports and duplicate strategies
# =========================================================================


class TestReimport:
    """Tests for importing the same data twice."""

    companies = [
        {"nombre": "Acme SL", "cif": "B12345678", "sector": "Retail"},
        {"nombre": "Beta SA", "web": "https://beta.es", "sector": "Energy"},
    ]

    def test_skip_reimport_changes_nothing(self, store, skip_config):
        import_rows(self.companies, ImportType.COMPANIES, skip_config, store)
        before = store.find_all(EntityKind.COMPANY)
        results = import_rows(self.companies, ImportType.COMPANIES, skip_config, store)

        assert [r.status for r in results] == [RowStatus.SKIPPED, RowStatus.SKIPPED]
        assert [r.reason for r in results] == ["duplicate_skipped"] * 2
        assert "matched by exact" in results[0].message
        assert store.find_all(EntityKind.COMPANY) == before

    def test_update_reimport_changes_field(self, store, skip_config, update_config):
        import_rows(self.companies, ImportType.COMPANIES, skip_config, store)
        changed = [{**self.companies[0], "sector": "Technology"}]
        results = import_rows(changed, ImportType.COMPANIES, update_config, store)

        assert results[0].reason == "updated"
        acme = store.find_by_field(EntityKind.COMPANY, "tax_id", "B12345678")[0]
        assert acme["sector"] == "Technology"
        assert store.count(EntityKind.COMPANY) == 2

    def test_create_new_company_import_duplicates(self, store, skip_config, create_new_config):
        import_rows([{"name": "Acme Corp"}], ImportType.COMPANIES, skip_config, store)
        results = import_rows(
            [{"name": "ACME CORP S.A."}], ImportType.COMPANIES, create_new_config, store,
        )

        assert results[0].reason == "created_duplicate"
        assert store.count(EntityKind.COMPANY) == 2

    def test_create_new_contact_reuses_existing_parent(self, store, skip_config, create_new_config):
        import_rows([{"name": "Acme Corp"}], ImportType.COMPANIES, skip_config, store)
        existing = store.find_all(EntityKind.COMPANY)[0]

        results = import_rows(
            [{"email": "ceo@acme.com", "empresa": "ACME CORP S.A."}],
            ImportType.CONTACTS, create_new_config, store,
        )

        assert results[0].status is RowStatus.SUCCESS
        assert store.find_all(EntityKind.COMPANY) == [existing]
        assert store.find_all(EntityKind.CONTACT)[0]["company_id"] == existing["id"]

    def test_update_without_stage_column_keeps_stage(self, store, skip_config, update_config):
        import_rows(
            [{"title": "Sale of Acme", "company": "Acme", "stage": "won", "value": "100"}],
            ImportType.DEALS, skip_config, store,
        )
        results = import_rows(
            [{"title": "Sale of Acme", "company": "Acme", "value": "250"}],
            ImportType.DEALS, update_config, store,
        )

        assert results[0].reason == "updated"
        deal = store.find_all(EntityKind.DEAL)[0]
        assert deal["stage"] == "won"
        assert deal["value"] == 250.0

    def test_new_deal_gets_default_stage(self, store, skip_config):
        import_rows(
            [{"title": "Sale of Acme", "company": "Acme"}], ImportType.DEALS, skip_config, store,
        )
        assert store.find_all(EntityKind.DEAL)[0]["stage"] == "prospect"

    def test_create_new_within_one_contacts_batch(self, store, create_new_config):
        rows = [
            {"email": "a@acme.com", "empresa": "Acme Corp"},
            {"email": "b@acme.com", "empresa": "ACME CORP S.A."},
        ]
        import_rows(rows, ImportType.CONTACTS, create_new_config, store)

        assert store.count(EntityKind.COMPANY) == 1
        assert store.count(EntityKind.CONTACT) == 2


# =========================================================================
# Campaign contacts
# =========================================================================


class TestCampaignImport:
    def test_requires_campaign_id(self, store, skip_config):
        with pytest.raises(ValueError, match="campaign_id"):
            import_rows([{"email": "a@b.com"}], ImportType.CAMPAIGN_CONTACTS, skip_config, store)

    def test_contacts_joined_to_campaign(self, store, skip_config):
        config = dataclasses.replace(skip_config, campaign_id="camp-1")
        rows = [
            {"email": "maria.lopez@xyz.com", "empresa": "XYZ Corp"},
            {"email": "juan@acme.com"},
        ]
        results = import_rows(rows, ImportType.CAMPAIGN_CONTACTS, config, store)

        assert results[0].display_name == "Maria Lopez"
        memberships = store.find_all(EntityKind.CAMPAIGN_MEMBERSHIP)
        assert {m["campaign_id"] for m in memberships} == {"camp-1"}
        assert len(memberships) == 2

    def test_reimport_keeps_single_membership(self, store, skip_config):
        config = dataclasses.replace(skip_config, campaign_id="camp-1")
        rows = [{"email": "juan@acme.com"}]
        import_rows(rows, ImportType.CAMPAIGN_CONTACTS, config, store)
        results = import_rows(rows, ImportType.CAMPAIGN_CONTACTS, config, store)

        assert results[0].status is RowStatus.SKIPPED
        assert store.count(EntityKind.CAMPAIGN_MEMBERSHIP) == 1
