'''
Pytest configuration for the FastAPI application.

This file sets up fixtures for:
1. Forcing the application into TEST_MODE (on a throw-away SQLite file)
   before any application code is imported.
2. Creating and dropping the schema around every test.
3. Providing an httpx AsyncClient for endpoint testing.
4. Providing instances of all service classes, pre-injected with a test db session.
'''

import os
import tempfile

# --- Must run before the settings are imported ---
TEST_DB_PATH = os.path.join(tempfile.gettempdir(), "tutor_ledger_test.db")
TEST_DB_URL = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["TEST_MODE"] = "True"
os.environ["DATABASE_URL_TEST"] = TEST_DB_URL
os.environ.setdefault("DATABASE_URL_PROD", TEST_DB_URL)

import pytest
from typing import AsyncGenerator
from decimal import Decimal

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

# --- Application Imports ---
from tutor_ledger.main import app
from tutor_ledger.common.config import settings
from tutor_ledger.database import engine as db_engine
from tutor_ledger.database import models as db_models
from tutor_ledger.services.student_service import StudentService
from tutor_ledger.services.finance_service import LedgerService, BalanceStatusService
from tutor_ledger.services.reconciliation_service import ReconciliationService
from tutor_ledger.services.import_service import PaymentImportService

from tests.database import factories
from tests.database.factories import StudentBalanceFactory


@pytest.fixture(scope="session")
def anyio_backend():
    """
    Override the default 'anyio_backend' fixture.
    1. Forces the backend to 'asyncio' (solves 'trio' error).
    2. Promotes the scope to 'session' (solves 'ScopeMismatch').
    """
    return "asyncio"


# --- 1. Database Fixtures ---

@pytest.fixture(scope="function")
async def test_database() -> AsyncGenerator[None, None]:
    """
    Creates the engine (as the app's lifespan would) and a fresh schema.
    Services commit per student / per row, so isolation comes from
    dropping the tables afterwards rather than from a rollback.
    """
    assert settings.TEST_MODE is True, \
        "TEST_MODE was not set to True! Check your .env file or environment."

    db_engine.create_db_engine_and_session_factory(settings.database_url)
    await db_engine.drop_all_tables()
    await db_engine.create_all_tables()
    yield
    await db_engine.drop_all_tables()
    await db_engine.dispose_db_engine()


@pytest.fixture(scope="function")
async def db_session(test_database) -> AsyncGenerator[AsyncSession, None]:
    """
    Provides the session used by the service tests and the data factories.
    """
    session = db_engine.AsyncSessionLocal()
    factories.test_db_session = session
    try:
        yield session
    finally:
        factories.test_db_session = None
        await session.rollback()
        await session.close()


@pytest.fixture(scope="function")
async def client(test_database) -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    HTTP client bound to the app. Requests use the real get_db_session
    against the engine created by `test_database`.
    """
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client


# --- 2. Service Fixtures ---

@pytest.fixture(scope="function")
def student_service(db_session: AsyncSession) -> StudentService:
    return StudentService(db=db_session)

@pytest.fixture(scope="function")
def ledger_service(db_session: AsyncSession) -> LedgerService:
    return LedgerService(db=db_session)

@pytest.fixture(scope="function")
def balance_status_service(db_session: AsyncSession, ledger_service: LedgerService) -> BalanceStatusService:
    return BalanceStatusService(db=db_session, ledger_service=ledger_service)

@pytest.fixture(scope="function")
def reconciliation_service(db_session: AsyncSession) -> ReconciliationService:
    return ReconciliationService(db=db_session)

@pytest.fixture(scope="function")
def import_service(db_session: AsyncSession, ledger_service: LedgerService) -> PaymentImportService:
    return PaymentImportService(db=db_session, ledger_service=ledger_service)


# --- 3. Data Fixtures ---

@pytest.fixture(scope="function")
def make_balance(db_session: AsyncSession):
    """
    Returns an async helper that stores a student with the given balance
    and returns the student's id.
    """
    async def _make(current_balance: str | Decimal, **kwargs):
        balance = StudentBalanceFactory(current_balance=Decimal(current_balance), **kwargs)
        await db_session.commit()
        return balance.student_id
    return _make


@pytest.fixture(scope="function")
async def settled_student_id(make_balance):
    """A student with a 1000 fee who owes nothing."""
    return await make_balance("0")


@pytest.fixture(scope="function")
async def pending_student_id(make_balance):
    """A student with a 1000 fee who owes the current period."""
    return await make_balance("1000")
