import pytest
from fastapi.testclient import TestClient

from core.config import Settings
from db.database import Database
from main import create_app
from services.ledger import MovementLedger
from services.reconciliation import ReportReconciler
from services.reports import ReportStore
from services.stock_store import StockRecordStore


@pytest.fixture()
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'stock.db'}",
        app_env="test",
        db_connect_max_retries=1,
        stock_update_max_attempts=10,
        log_level="WARNING",
    )


@pytest.fixture()
async def database(settings):
    db = Database(settings.database_url, max_retries=1)
    await db.connect()
    yield db
    await db.dispose()


@pytest.fixture()
async def session(database):
    async with database.session_maker() as s:
        yield s


@pytest.fixture()
def store(session, settings):
    return StockRecordStore(session, max_attempts=settings.stock_update_max_attempts)


@pytest.fixture()
def ledger(store):
    return MovementLedger(store)


@pytest.fixture()
def reports(session):
    return ReportStore(session)


@pytest.fixture()
def reconciler(reports, store):
    return ReportReconciler(reports, store)


@pytest.fixture()
def client(settings):
    with TestClient(create_app(settings)) as c:
        yield c
