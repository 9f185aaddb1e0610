"""Tests for startup validation functions."""

from unittest.mock import AsyncMock

import pytest

from src import main
from src.core.config import settings


@pytest.fixture
def healthy_stores(monkeypatch, avatar_dir):
    """Stub the record store check; avatar storage uses a temporary directory."""
    check = AsyncMock()
    monkeypatch.setattr(main, "check_database", check)
    return check


async def test_startup_passes_with_secret_key(monkeypatch, healthy_stores, avatar_dir) -> None:
    """Test that startup validation accepts a configured secret and reachable stores."""
    monkeypatch.setattr(settings, "secret_key", "configured")

    await main.validate_startup_configuration()

    healthy_stores.assert_awaited_once()
    assert avatar_dir.is_dir()


@pytest.mark.parametrize("secret", [None, ""])
async def test_startup_exits_without_secret_key(monkeypatch, capsys, healthy_stores, secret) -> None:
    """Test that startup exits with status 1 and a readable message when SECRET_KEY is missing."""
    monkeypatch.setattr(settings, "secret_key", secret)

    with pytest.raises(SystemExit) as exc_info:
        await main.validate_startup_configuration()

    assert exc_info.value.code == 1
    assert "SECRET_KEY" in capsys.readouterr().err
    healthy_stores.assert_not_awaited()


async def test_startup_exits_when_database_unreachable(monkeypatch, healthy_stores) -> None:
    """Test that a failing record store check aborts startup."""
    monkeypatch.setattr(settings, "secret_key", "configured")
    healthy_stores.side_effect = ConnectionError("Record store check failed: unable to open database file")

    with pytest.raises(SystemExit):
        await main.validate_startup_configuration()


async def test_database_check_against_sqlite(monkeypatch, tmp_path) -> None:
    """Test the record store check creates the schema in a fresh file."""
    monkeypatch.setattr(settings, "sqlite_db_path", str(tmp_path / "fresh.db"))

    await main.check_database()
    await main.db_client.close_connection()

    assert (tmp_path / "fresh.db").exists()
