#!/usr/bin/env python3
"""
Shared pytest fixtures: a throwaway SQLite database per test, a seeded clinic,
and an HTTP client bound to the FastAPI app with "today" pinned.
"""

import os
import sys
from datetime import date, time
from types import SimpleNamespace

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Add the project root to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

# Settings are read at import time; keep the suite off any real database
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["APP_ENV"] = "testing"
os.environ["CLINIC_API_KEY"] = ""

import clinic_booking.db.base  # noqa: E402,F401  registers every model
from clinic_booking.core.business import ClinicPolicy  # noqa: E402
from clinic_booking.db.models.dentist_schedule import DentistSchedule  # noqa: E402
from clinic_booking.db.models.patient import Patient, PatientHmo  # noqa: E402
from clinic_booking.db.models.service import Service  # noqa: E402
from clinic_booking.db.models.user import User  # noqa: E402
from clinic_booking.db.seed import seed_weekly_schedule  # noqa: E402
from clinic_booking.db.session import Base  # noqa: E402

# 2030-01-01 is a Tuesday; the booking window runs 01-02 .. 01-08
TODAY = date(2030, 1, 1)
BOOKING_DAY = date(2030, 1, 3)

ALL_DAYS = dict(sun=True, mon=True, tue=True, wed=True, thu=True, fri=True, sat=True)


@pytest.fixture
def policy():
    return ClinicPolicy(today=TODAY)


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File-backed so concurrent sessions really use separate connections."""
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'clinic.db'}", poolclass=NullPool)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


async def add_dentists(session, count, *, prefix="D", **overrides):
    rows = []
    for i in range(count):
        fields = dict(
            dentist_code=f"{prefix}-{i + 1:03d}",
            employment_type="full_time",
            status="active",
            is_pseudonymous=True,
            **ALL_DAYS,
        )
        fields.update(overrides)
        rows.append(DentistSchedule(**fields))
    session.add_all(rows)
    await session.commit()
    return rows


async def set_weekly_hours(session, open_time, close_time):
    """Same hours on every weekday so tests never depend on which day it is."""
    from clinic_booking.crud.calendar import list_weekly

    for row in await list_weekly(session):
        row.is_open = True
        row.open_time = open_time
        row.close_time = close_time
    await session.commit()


@pytest_asyncio.fixture
async def clinic(session_factory):
    """
    Weekly rows open 08:00-17:00 every day, one dentist working every day,
    a linked patient with a valid and an expired HMO, staff, admin and an
    account that is not linked to any patient record.
    """
    async with session_factory() as s:
        await seed_weekly_schedule(s)

        consult = Service(name="Dental Consultation", estimated_minutes=30)
        extraction = Service(name="Tooth Extraction", estimated_minutes=60)
        cleaning = Service(name="Oral Prophylaxis", estimated_minutes=45)

        patient_user = User(name="Maria Santos", email="maria@example.com", role="patient")
        other_user = User(name="Jose Reyes", email="jose@example.com", role="patient")
        unlinked_user = User(name="Ana Cruz", email="ana@example.com", role="patient")
        staff = User(name="Front Desk", email="desk@example.com", role="staff")
        admin = User(name="Clinic Admin", email="admin@example.com", role="admin")
        s.add_all([consult, extraction, cleaning, patient_user, other_user, unlinked_user, staff, admin])
        await s.flush()

        patient = Patient(user_id=patient_user.id, first_name="Maria", last_name="Santos", is_linked=True)
        other = Patient(user_id=other_user.id, first_name="Jose", last_name="Reyes", is_linked=True)
        s.add_all([patient, other])
        await s.flush()

        hmo = PatientHmo(patient_id=patient.id, provider_name="Maxicare",
                         effective_date=date(2029, 1, 1), expiry_date=date(2030, 12, 31))
        expired_hmo = PatientHmo(patient_id=patient.id, provider_name="Intellicare",
                                 effective_date=date(2028, 1, 1), expiry_date=date(2030, 1, 2))
        future_hmo = PatientHmo(patient_id=patient.id, provider_name="Medicard",
                                effective_date=date(2030, 6, 1))
        others_hmo = PatientHmo(patient_id=other.id, provider_name="PhilCare")
        s.add_all([hmo, expired_hmo, future_hmo, others_hmo])
        await s.commit()

        await add_dentists(s, 1)

        return SimpleNamespace(
            consult_id=consult.id,
            extraction_id=extraction.id,
            cleaning_id=cleaning.id,
            patient_user=patient_user,
            other_user=other_user,
            unlinked_user=unlinked_user,
            staff=staff,
            admin=admin,
            patient_id=patient.id,
            other_patient_id=other.id,
            hmo_id=hmo.id,
            expired_hmo_id=expired_hmo.id,
            future_hmo_id=future_hmo.id,
            others_hmo_id=others_hmo.id,
        )


@pytest_asyncio.fixture
async def short_day(session_factory, clinic):
    """Clinic open 08:00-09:00 with a single dentist: two blocks, capacity 1."""
    async with session_factory() as s:
        await set_weekly_hours(s, time(8, 0), time(9, 0))
    return clinic


@pytest_asyncio.fixture
async def client(session_factory, policy):
    from clinic_booking.api.deps import get_policy
    from clinic_booking.db.session import get_session
    from clinic_booking.main import app

    async def _session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_policy] = lambda: policy
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def as_user(user):
    return {"X-User-Id": str(user.id)}


# Pytest configuration hooks
def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "essential: Core functionality tests (< 2 minutes total)")
    config.addinivalue_line("markers", "slow: Long-running tests (> 30 seconds each)")
    config.addinivalue_line("markers", "integration: Tests that touch the database or the HTTP app")
    config.addinivalue_line("markers", "unit: Pure unit tests with no external dependencies")


def pytest_collection_modifyitems(config, items):
    """Run unit tests first, slow tests last"""
    def test_priority(item):
        if item.get_closest_marker("unit"):
            return 0
        elif item.get_closest_marker("essential"):
            return 1
        elif item.get_closest_marker("integration"):
            return 2
        elif item.get_closest_marker("slow"):
            return 3
        return 1

    items[:] = sorted(items, key=test_priority)


_ref_counter = iter(range(1, 10_000_000))


async def add_appointment(session, *, patient_id, service_id, time_slot="08:00-08:30",
                          day=BOOKING_DAY, status="pending", notes=None, payment_method="cash"):
    """Insert a booking directly, bypassing the booking rules."""
    from clinic_booking.db.models.appointment import Appointment

    appt = Appointment(
        patient_id=patient_id,
        service_id=service_id,
        date=day,
        time_slot=time_slot,
        reference_code=f"T{next(_ref_counter):07d}",
        status=status,
        payment_method=payment_method,
        payment_status="unpaid",
        notes=notes,
    )
    session.add(appt)
    await session.commit()
    return appt
