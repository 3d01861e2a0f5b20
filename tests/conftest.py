"""
Shared pytest fixtures available to every test file automatically.
No imports needed in test files — pytest discovers this by convention.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.deps import get_booking_store, get_properties_client, get_users_client
from app.main import install_exception_handlers
from app.manager import BookingManager
from app.routers.booking import router

from .factories import make_properties_client, make_users_client
from .fakes import InMemoryBookingStore

ROUTER_PATH = "app.routers.booking"


# ---------------------------------------------------------------------------
# Redis — never touched by tests; cache helpers are replaced with AsyncMocks
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def occupied_cache():
    with (
        patch(f"{ROUTER_PATH}.get_occupied_cache", AsyncMock(return_value=None)) as get,
        patch(f"{ROUTER_PATH}.set_occupied_cache", AsyncMock()) as set_,
        patch(f"{ROUTER_PATH}.invalidate_occupied_cache", AsyncMock()) as invalidate,
    ):
        yield {"get": get, "set": set_, "invalidate": invalidate}


# ---------------------------------------------------------------------------
# App builder — used by all client fixtures
# ---------------------------------------------------------------------------


def build_app(store, properties_client=None, users_client=None) -> FastAPI:
    """
    Fresh FastAPI app with the booking store and directory clients overridden.
    No lifespan runs, so no database, HTTP or Redis connection is opened.
    """
    app = FastAPI()
    install_exception_handlers(app)
    app.include_router(router)

    pc = properties_client if properties_client is not None else make_properties_client()
    uc = users_client if users_client is not None else make_users_client()
    app.dependency_overrides[get_booking_store] = lambda: store
    app.dependency_overrides[get_properties_client] = lambda: pc
    app.dependency_overrides[get_users_client] = lambda: uc

    return app


# ---------------------------------------------------------------------------
# Reusable fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def store() -> InMemoryBookingStore:
    return InMemoryBookingStore()


@pytest.fixture()
def properties_client():
    return make_properties_client()


@pytest.fixture()
def users_client():
    return make_users_client()


@pytest.fixture()
def manager(store, properties_client, users_client) -> BookingManager:
    return BookingManager(store=store, properties=properties_client, users=users_client)


@pytest.fixture()
def client(store, properties_client, users_client) -> TestClient:
    return TestClient(
        build_app(store, properties_client, users_client),
        raise_server_exceptions=False,
    )


@pytest.fixture()
def client_factory():
    def _make(store, properties_client=None, users_client=None) -> TestClient:
        return TestClient(
            build_app(store, properties_client, users_client),
            raise_server_exceptions=False,
        )

    return _make
