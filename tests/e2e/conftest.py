"""
E2E test fixtures for the field service operations API.

Provides:
- An in-process FastAPI test app with the field service routes registered
- httpx AsyncClient wired via ASGI transport (no network needed)
- An async SQLite database session (in-memory) for isolation
- Pre-populated seed data: users, providers, one breached order and its events
- A helper that issues bearer headers for a seeded user

The full route -> repository -> builder flow is exercised against real
tables; only the database URL differs from production.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from fieldops.models.base import Base

# ---------------------------------------------------------------------------
# Test IDs (stable across tests so cross-references work)
# ---------------------------------------------------------------------------

CUSTOMER_USER_ID = 1
PROVIDER_USER_ID = 2
SUSPENDED_USER_ID = 3
UNRELATED_USER_ID = 4

PROVIDER_ID = 10
IDLE_PROVIDER_ID = 20

ORDER_ID = 1001
ORDER_REFERENCE = "FS-1001"


# ---------------------------------------------------------------------------
# Async engine + session factory (in-memory SQLite)
# ---------------------------------------------------------------------------

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def _test_engine():
    """Create an engine with one shared in-memory connection per test."""
    engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=StaticPool)

    # SQLite does not enforce foreign keys by default
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_fk(dbapi_conn, _):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(_test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Yield a fresh session; everything it wrote is rolled back afterwards."""
    session_factory = async_sessionmaker(
        bind=_test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        await session.begin()
        yield session
        await session.rollback()


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------

async def _seed_data(db: AsyncSession) -> None:
    """Insert minimum seed data for E2E tests.

    One en route order for the customer, 90 minutes into a 60 minute SLA,
    assigned to a provider owned by ``PROVIDER_USER_ID``.
    """
    from fieldops.models.fieldService import (
        FieldServiceEvent,
        FieldServiceOrder,
        FieldServiceProvider,
    )
    from fieldops.models.user import User, UserStatus

    now = datetime.now(timezone.utc)

    # -- Users --
    db.add_all(
        [
            User(
                id=CUSTOMER_USER_ID,
                email="customer@test.fieldops.dev",
                first_name="Avery",
                last_name="Stone",
                status=UserStatus.ACTIVE.value,
            ),
            User(
                id=PROVIDER_USER_ID,
                email="provider@test.fieldops.dev",
                first_name="Jordan",
                last_name="Field",
                status=UserStatus.ACTIVE.value,
            ),
            User(
                id=SUSPENDED_USER_ID,
                email="suspended@test.fieldops.dev",
                first_name="Sam",
                last_name="Held",
                status=UserStatus.SUSPENDED.value,
            ),
            User(
                id=UNRELATED_USER_ID,
                email="bystander@test.fieldops.dev",
                first_name="Robin",
                last_name="Quiet",
                status=UserStatus.ACTIVE.value,
            ),
        ]
    )
    await db.flush()

    # -- Providers --
    db.add_all(
        [
            FieldServiceProvider(
                id=PROVIDER_ID,
                user_id=PROVIDER_USER_ID,
                name="Jordan Field",
                email="jordan@test.fieldops.dev",
                phone="+44 20 7946 0000",
                specialties=["networking", "fibre"],
                rating=Decimal("4.80"),
                last_check_in_at=now - timedelta(minutes=5),
                location_lat=Decimal("51.5000000"),
                location_lng=Decimal("-0.1000000"),
                location_label="Depot",
                location_updated_at=now - timedelta(minutes=5),
                metadata_json={},
            ),
            FieldServiceProvider(
                id=IDLE_PROVIDER_ID,
                user_id=None,
                name="Casey Spare",
                specialties=["hvac"],
                rating=Decimal("4.10"),
                metadata_json={},
            ),
        ]
    )
    await db.flush()

    # -- Orders --
    db.add(
        FieldServiceOrder(
            id=ORDER_ID,
            reference=ORDER_REFERENCE,
            customer_user_id=CUSTOMER_USER_ID,
            provider_id=PROVIDER_ID,
            status="en_route",
            priority="urgent",
            service_type="Network repair",
            summary="Core switch outage",
            requested_at=now - timedelta(minutes=90),
            scheduled_for=now + timedelta(hours=1),
            eta_minutes=18,
            sla_minutes=60,
            location_lat=Decimal("51.5100000"),
            location_lng=Decimal("-0.1200000"),
            location_label="Head office",
            address_line_1="1 Strand",
            city="London",
            postal_code="WC2N 5HR",
            country="GB",
            metadata_json={
                "supportChannel": "#ops-london",
                "preferenceTags": ["Training"],
            },
        )
    )
    await db.flush()

    # -- Events --
    db.add_all(
        [
            FieldServiceEvent(
                order_id=ORDER_ID,
                event_type="dispatch_created",
                notes="Dispatch raised from customer portal",
                occurred_at=now - timedelta(minutes=80),
                metadata_json={},
            ),
            FieldServiceEvent(
                order_id=ORDER_ID,
                event_type="technician_en_route",
                status="en_route",
                author="Jordan Field",
                occurred_at=now - timedelta(minutes=15),
                metadata_json={"vehicle": "VAN-7"},
            ),
        ]
    )
    await db.flush()


@pytest_asyncio.fixture
async def seeded_db(db_session: AsyncSession) -> AsyncSession:
    """A database session with seed data already inserted."""
    await _seed_data(db_session)
    return db_session


# ---------------------------------------------------------------------------
# FastAPI test app + client
# ---------------------------------------------------------------------------

def _create_test_app(db_session_override: AsyncSession):
    """Build a FastAPI app with the field service routes registered and the
    DB dependency overridden to use the test session."""
    from fastapi import FastAPI

    from fieldops.api.deps import get_db
    from fieldops.api.routes.fieldServices import router as field_services_router

    app = FastAPI(title="Field Service Operations E2E")

    async def _override_get_db():
        yield db_session_override

    app.dependency_overrides[get_db] = _override_get_db

    app.include_router(field_services_router, prefix="/api/v1")

    return app


@pytest_asyncio.fixture
async def client(seeded_db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """httpx AsyncClient connected to the test app via ASGI transport."""
    app = _create_test_app(seeded_db)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------

def auth_headers(user_id: int) -> dict[str, str]:
    """Bearer headers carrying a fresh access token for ``user_id``."""
    from fieldops.services.auth_service import create_access_token

    token, _ = create_access_token(user_id)
    return {"Authorization": f"Bearer {token}"}
