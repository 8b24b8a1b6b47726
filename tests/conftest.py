"""Shared fixtures for import pipeline tests."""

from __future__ import annotations

import pytest

from dealflow.entity_resolution.store import InMemoryEntityStore
from dealflow.models import DuplicateStrategy, ImportConfig


@pytest.fixture()
def store() -> InMemoryEntityStore:
    """An empty in-memory entity store."""
    return InMemoryEntityStore()


@pytest.fixture()
def skip_config() -> ImportConfig:
    return ImportConfig(
        duplicate_strategy=DuplicateStrategy.SKIP,
        import_batch_id="batch-1",
        import_log_id="log-1",
    )


@pytest.fixture()
def update_config() -> ImportConfig:
    return ImportConfig(
        duplicate_strategy=DuplicateStrategy.UPDATE,
        import_batch_id="batch-2",
        import_log_id="log-2",
    )


@pytest.fixture()
def create_new_config() -> ImportConfig:
    return ImportConfig(
        duplicate_strategy=DuplicateStrategy.CREATE_NEW,
        import_batch_id="batch-3",
        import_log_id="log-3",
    )


@pytest.fixture()
def contacts_csv() -> bytes:
    """A contacts file mixing a valid row, an invalid email and a quoted company."""
    return (
        "Nombre,Apellidos,Email,Telefono,Empresa,CIF\n"
        "Juan,Garcia,juan@acme.com,+34600000000,\"Acme, S.L.\",B12345678\n"
        "Ana,Ruiz,not-an-email,+34600000001,Beta SA,\n"
        "\n"
        "Maria,Lopez,MARIA@XYZ.COM,600 000 002,XYZ Corp,\n"
    ).encode("utf-8")
