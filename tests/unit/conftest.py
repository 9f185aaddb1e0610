"""Pytest configuration and fixtures for unit tests."""

import pytest

from src.core.config import settings
from src.services import identity_service
from tests.unit.mocks import InMemoryDBClient


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def patched_db(monkeypatch, in_memory_db):
    """Patches src.core.db_client functions to use InMemoryDBClient."""
    monkeypatch.setattr("src.core.db_client.create_record", in_memory_db.create_record)
    monkeypatch.setattr("src.core.db_client.get_record", in_memory_db.get_record)
    monkeypatch.setattr("src.core.db_client.update_record", in_memory_db.update_record)
    monkeypatch.setattr("src.core.db_client.upsert_record", in_memory_db.upsert_record)
    monkeypatch.setattr("src.core.db_client.delete_record", in_memory_db.delete_record)
    monkeypatch.setattr("src.core.db_client.list_records", in_memory_db.list_records)
    monkeypatch.setattr("src.core.db_client.get_first_record", in_memory_db.get_first_record)
    monkeypatch.setattr("src.core.db_client.transaction", in_memory_db.transaction)

    return in_memory_db


@pytest.fixture
def session_secret(monkeypatch):
    """Configure a signing secret and cheap password hashing."""
    monkeypatch.setattr(settings, "secret_key", "unit-test-secret")
    monkeypatch.setattr(
        identity_service, "pwd_context", identity_service.pwd_context.copy(pbkdf2_sha256__default_rounds=1_000)
    )
    return settings.secret_key


@pytest.fixture
def avatar_dir(monkeypatch, tmp_path):
    """Point avatar storage at a temporary directory."""
    storage = tmp_path / "avatars"
    monkeypatch.setattr(settings, "avatar_storage_dir", str(storage))
    monkeypatch.setattr(settings, "public_base_url", "http://testserver")
    return storage
