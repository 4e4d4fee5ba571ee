from __future__ import annotations

import os
from typing import Generator

import pytest

# Select the in-process store before the app module reads its configuration
os.environ["STORE_BACKEND"] = "memory"
os.environ["MODE"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from fastapi.testclient import TestClient

import main
from main import app
from services.expense_store import InMemoryExpenseStore


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def store(client: TestClient) -> InMemoryExpenseStore:
    return main.app_state["expense_store"]


@pytest.fixture
def coffee(client: TestClient) -> dict:
    response = client.post("/api/expenses", json={"description": "Coffee", "cost": 4.5})
    assert response.status_code == 201
    return response.json()
