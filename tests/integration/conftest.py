"""Pytest configuration and fixtures for integration tests against a real SQLite file."""

import pytest

from src.core import db_client
from src.core.config import settings


@pytest.fixture
async def sqlite_db(monkeypatch, tmp_path):
    """Point the record store at a fresh SQLite file and create the schema."""
    db_path = tmp_path / "questlog.db"
    monkeypatch.setattr(settings, "sqlite_db_path", str(db_path))

    await db_client.init_db()
    yield db_path
    await db_client.close_connection()


@pytest.fixture
async def user_id(sqlite_db) -> str:
    """ID of a stored user that tasks and progression can reference."""
    record = await db_client.create_record(
        collection="users",
        data={"email": "ada@example.com", "password_hash": "pbkdf2_sha256$1$00$00"},
    )
    return record["id"]
