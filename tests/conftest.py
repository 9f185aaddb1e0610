"""Pytest configuration and shared fixtures."""

import pytest
from fastapi.testclient import TestClient

from src.main import app


@pytest.fixture
def test_client() -> TestClient:
    """HTTP client for the app.

    Used without a `with` block so the lifespan (logfire setup, startup
    validation, database init) does not run; storage is patched per test.
    """
    return TestClient(app)
