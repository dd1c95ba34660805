import os
import tempfile
from typing import Dict, Tuple

import pytest
from fastapi.testclient import TestClient

# The /uploads mount is bound when the app is imported, so the directory has to
# be chosen before that.
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="bookmarket-uploads-")

from bookmarket.main import app
from bookmarket.services.database import get_database
from bookmarket.services.memory_database import MemoryDatabase
from bookmarket.services.sql_database import SQLDatabase


@pytest.fixture
def store() -> MemoryDatabase:
    return MemoryDatabase()


@pytest.fixture(params=["memory", "sql"])
def any_store(request):
    """Runs a test once against each record store backend."""
    if request.param == "memory":
        return MemoryDatabase()
    return SQLDatabase("sqlite://", create_tables=True)


@pytest.fixture
def client(store):
    app.dependency_overrides[get_database] = lambda: store
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.pop(get_database, None)


def register(client: TestClient, email: str, role: str = "buyer", name: str = "Test User",
             password: str = "password123") -> Tuple[dict, Dict[str, str]]:
    resp = client.post(
        "/auth/register",
        json={"email": email, "password": password, "name": name, "role": role},
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    return body["user"], {"Authorization": f"Bearer {body['token']}"}


def create_listing(client: TestClient, headers: Dict[str, str], **overrides) -> dict:
    form = {
        "title": "Dune",
        "author": "Frank Herbert",
        "description": "Paperback, well loved",
        "price": "12.50",
        "condition": "good",
        "category": "fiction",
    }
    form.update(overrides)
    resp = client.post("/listings", data=form, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()
