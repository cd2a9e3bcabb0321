"""Pytest configuration and fixtures for the onboarding tests.

Provides flag stores (in-memory, failing, SQLite), a fake tenant API,
notification collectors and an HTTP client bound to the app.
"""

import uuid
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from fastapi import Depends
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.deps import SESSION_HEADER, get_flag_store, get_session_id, get_tenant_api
from app.main import app
from app.schemas.subscription import (
    AddonPricingScope,
    AssignPlanResponse,
    AssignPlanToTenant,
    BranchSelection,
    Plan,
    SelectedAddon,
    TenantStatusResponse,
)
from app.services.notifications import ApiErrorPresenter, CollectingNotifier
from app.services.workflow import StepTracker
from app.utils.flag_store import FlagStoreError, InMemoryFlagStore, SqlFlagStore


# ── Flag stores ──────────────────────────────────────────────────

class FailingFlagStore:
    """Every operation raises, like an unreachable backend."""

    def get(self, key):
        raise FlagStoreError("storage unavailable")

    def set(self, key, value):
        raise FlagStoreError("storage unavailable")

    def remove(self, key):
        raise FlagStoreError("storage unavailable")


@pytest.fixture
def store() -> InMemoryFlagStore:
    return InMemoryFlagStore()


@pytest.fixture
def failing_store() -> FailingFlagStore:
    return FailingFlagStore()


@pytest.fixture
def tracker(store) -> StepTracker:
    return StepTracker(store)


@pytest.fixture
def sql_session_factory():
    """In-memory SQLite with the flag table provisioned."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(engine, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def sql_store(sql_session_factory) -> SqlFlagStore:
    return SqlFlagStore(sql_session_factory, "session-a")


# ── Notifications ────────────────────────────────────────────────

@pytest.fixture
def notifier() -> CollectingNotifier:
    return CollectingNotifier()


@pytest.fixture
def error_presenter(notifier) -> ApiErrorPresenter:
    return ApiErrorPresenter(notifier)


# ── Tenant API ───────────────────────────────────────────────────

class FakeTenantApi:
    """Records calls and answers with canned responses (or raises)."""

    def __init__(self):
        self.assign_response = AssignPlanResponse(
            success=True, data={"subscription_id": 42}, message="Plan assigned"
        )
        self.status_response: Optional[TenantStatusResponse] = None
        self.assign_error: Optional[Exception] = None
        self.status_error: Optional[Exception] = None
        self.assign_calls: list[AssignPlanToTenant] = []
        self.status_calls: list[str] = []

    async def assign_plan_to_tenant(self, payload: AssignPlanToTenant) -> AssignPlanResponse:
        self.assign_calls.append(payload)
        if self.assign_error is not None:
            raise self.assign_error
        return self.assign_response

    async def check_tenant_account_status(self, tenant_id: str) -> TenantStatusResponse:
        self.status_calls.append(tenant_id)
        if self.status_error is not None:
            raise self.status_error
        return self.status_response

    async def aclose(self) -> None:
        pass


@pytest.fixture
def tenant_api() -> FakeTenantApi:
    return FakeTenantApi()


# ── Test Data Fixtures ───────────────────────────────────────────

@pytest.fixture
def basic_plan() -> Plan:
    return Plan(
        id=7,
        name="Business",
        monthly_price=100.0,
        annual_discount_percentage=20.0,
        included_branches_count=5,
    )


@pytest.fixture
def org_addon() -> SelectedAddon:
    return SelectedAddon(
        addon_id=11,
        addon_name="Loyalty",
        addon_price=30.0,
        pricing_scope=AddonPricingScope.ORGANIZATION,
    )


@pytest.fixture
def branch_addon() -> SelectedAddon:
    return SelectedAddon(
        addon_id=22,
        addon_name="Kitchen Display",
        addon_price=10.0,
        pricing_scope=AddonPricingScope.BRANCH,
        branches=[
            BranchSelection(branch_index=0, branch_name="Main", is_selected=True),
            BranchSelection(branch_index=1, branch_name="Mall", is_selected=False),
        ],
    )


# ── HTTP client ──────────────────────────────────────────────────

@pytest.fixture
def session_headers() -> dict:
    return {SESSION_HEADER: f"test-{uuid.uuid4().hex}"}


@pytest_asyncio.fixture
async def client(store, tenant_api) -> AsyncGenerator[AsyncClient, None]:
    """App client whose flag store and tenant API are the test fixtures."""

    async def override_get_tenant_api():
        yield tenant_api

    def override_get_flag_store(session_id: str = Depends(get_session_id)):
        return store

    app.dependency_overrides[get_flag_store] = override_get_flag_store
    app.dependency_overrides[get_tenant_api] = override_get_tenant_api

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: HTTP endpoint tests")
