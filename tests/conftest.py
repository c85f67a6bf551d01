"""Shared test fixtures: an in-memory store seeded with the default catalog and an API client wired to it."""

import pytest
from fastapi.testclient import TestClient

from app.core.dependencies import get_current_user_id, get_permission_store
from app.main import app
from app.modules.audit.schemas import Actor
from app.modules.permissions.service import PermissionEngine
from tests.fakes import InMemoryPermissionStore

CLIENT_ID = "client-1"
PRO_A = "pro-a"
PRO_B = "pro-b"
PRO_C = "pro-c"


@pytest.fixture
def store() -> InMemoryPermissionStore:
    store = InMemoryPermissionStore()
    store.display_names.update({PRO_A: "Alex Trainer", PRO_B: "Blair Nutrition"})
    return store


@pytest.fixture
def engine(store: InMemoryPermissionStore) -> PermissionEngine:
    return PermissionEngine(store)


@pytest.fixture
def client_actor() -> Actor:
    return Actor(actor_type="client", actor_id=CLIENT_ID)


class CurrentUser:
    """Mutable stand-in for the verified Supabase user."""

    def __init__(self):
        self.user_data = {"id": CLIENT_ID, "email": "client@example.com", "app_metadata": {}}

    def set(self, user_id: str, admin: bool = False):
        self.user_data = {
            "id": user_id,
            "email": f"{user_id}@example.com",
            "app_metadata": {"type": "admin"} if admin else {},
        }

    def __call__(self) -> dict:
        return self.user_data


@pytest.fixture
def current_user() -> CurrentUser:
    return CurrentUser()


@pytest.fixture
def api(store: InMemoryPermissionStore, current_user: CurrentUser):
    """TestClient with the store and the authenticated user overridden."""
    app.dependency_overrides[get_permission_store] = lambda: store
    app.dependency_overrides[get_current_user_id] = current_user
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client
    app.dependency_overrides.clear()
