"""
Pytest configuration and fixtures for backend tests.
"""

import itertools
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rest_api.main import app
from rest_api.models import (
    Base,
    Plan,
    RestaurantArea,
    Subscription,
    Table,
    Tenant,
)
from rest_api.seed import seed_plans
from rest_api.services.domain.tenant_directory import TenantDirectory, get_tenant_directory
from shared.config.constants import Roles, SubscriptionStatus, TableStatus
from shared.infrastructure.db import get_db
from shared.security.auth import sign_jwt


_id_counter = itertools.count(1000)


# SQLite in-memory database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_HOST = "testserver"
T0 = datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)


def next_id():
    """Unique suffix for external references and names."""
    return next(_id_counter)


class FixedClock:
    """
    Deterministic clock for services that take `now=`.

    Usage:
        clock = FixedClock(T0)
        service = TableService(db, now=clock)
        clock.advance(minutes=61)
    """

    def __init__(self, start: datetime = T0):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **delta) -> datetime:
        self.current = self.current + timedelta(**delta)
        return self.current


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def tenant_directory(db_session):
    """Directory resolving the test client's host to the seeded tenant."""
    return TenantDirectory(
        TestingSessionLocal,
        identify_by="domain",
        default_slug="",
        domain_mapping={TEST_HOST: "test"},
        excluded_paths=["/api", "/admin"],
    )


@pytest.fixture(scope="function")
def client(db_session, tenant_directory):
    """
    Test client with database and tenant directory overrides.

    The lifespan is not run, so startup never touches the configured
    database.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_tenant_directory] = lambda: tenant_directory

    yield TestClient(app)

    app.dependency_overrides.clear()


# =============================================================================
# Seed data
# =============================================================================


@pytest.fixture
def seed_plan_catalog(db_session):
    """The basic / professional / enterprise plans, keyed by code."""
    seed_plans(db_session)
    return {plan.code: plan for plan in db_session.query(Plan).all()}


@pytest.fixture
def make_plan(db_session):
    """Factory for ad-hoc plans."""
    def _make(code=None, tier=1, features=None, limits=None):
        plan = Plan(
            code=code or f"plan-{next_id()}",
            name="Custom",
            tier=tier,
            price_cents=0,
            features=list(features or []),
            limits=dict(limits or {}),
        )
        db_session.add(plan)
        db_session.commit()
        db_session.refresh(plan)
        return plan

    return _make


@pytest.fixture
def seed_tenant(db_session):
    tenant = Tenant(
        name="Test Restaurant",
        slug="test",
        domain="test.example.com",
        billing_customer_id="cus_test",
    )
    db_session.add(tenant)
    db_session.commit()
    db_session.refresh(tenant)
    return tenant


@pytest.fixture
def other_tenant(db_session):
    tenant = Tenant(
        name="Other Restaurant",
        slug="other",
        domain="other.example.com",
        billing_customer_id="cus_other",
    )
    db_session.add(tenant)
    db_session.commit()
    db_session.refresh(tenant)
    return tenant


@pytest.fixture
def subscribe(db_session):
    """Attach a subscription with the given plan and status to a tenant."""
    def _subscribe(tenant, plan, status=SubscriptionStatus.ACTIVE, **fields):
        subscription = Subscription(
            tenant_id=tenant.id,
            plan_id=plan.id,
            status=status,
            **fields,
        )
        db_session.add(subscription)
        db_session.commit()
        db_session.refresh(subscription)
        return subscription

    return _subscribe


@pytest.fixture
def seed_subscription(seed_tenant, seed_plan_catalog, subscribe):
    """Active professional subscription for the test tenant."""
    return subscribe(seed_tenant, seed_plan_catalog["professional"])


@pytest.fixture
def seed_area(db_session, seed_tenant):
    area = RestaurantArea(tenant_id=seed_tenant.id, name="Terrace")
    db_session.add(area)
    db_session.commit()
    db_session.refresh(area)
    return area


@pytest.fixture
def make_table(db_session):
    def _make(tenant, number=None, area=None, status=TableStatus.AVAILABLE, **fields):
        table = Table(
            tenant_id=tenant.id,
            number=number or str(next_id()),
            capacity=4,
            status=status,
            area_id=area.id if area is not None else None,
            **fields,
        )
        db_session.add(table)
        db_session.commit()
        db_session.refresh(table)
        return table

    return _make


@pytest.fixture
def seed_table(seed_tenant, seed_area, make_table):
    return make_table(seed_tenant, number="12", area=seed_area)


# =============================================================================
# Authentication
# =============================================================================


def make_token(tenant_id, roles=(Roles.ADMIN,), user_id=1, email="admin@test.com"):
    return sign_jwt(
        {
            "sub": str(user_id),
            "tenant_id": tenant_id,
            "roles": list(roles),
            "email": email,
        }
    )


@pytest.fixture
def auth_headers(seed_tenant):
    """ADMIN token for the test tenant."""
    return {"Authorization": f"Bearer {make_token(seed_tenant.id)}"}


@pytest.fixture
def waiter_auth_headers(seed_tenant):
    token = make_token(seed_tenant.id, roles=(Roles.WAITER,), user_id=2, email="waiter@test.com")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def session_factory():
    """Session factory bound to the test engine, for code that opens its own sessions."""
    return TestingSessionLocal


@pytest.fixture
def token_for():
    """make_token as a fixture: token_for(tenant_id, roles=("ADMIN",))."""
    return make_token
