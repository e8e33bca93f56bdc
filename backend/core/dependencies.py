from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import get_async_session
from services.ledger import MovementLedger
from services.reconciliation import ReportReconciler
from services.reports import ReportStore
from services.stock_store import StockRecordStore


def get_stock_store(
    request: Request,
    db: AsyncSession = Depends(get_async_session),
) -> StockRecordStore:
    return StockRecordStore(db, max_attempts=request.app.state.settings.stock_update_max_attempts)


def get_ledger(store: StockRecordStore = Depends(get_stock_store)) -> MovementLedger:
    return MovementLedger(store)


def get_report_store(db: AsyncSession = Depends(get_async_session)) -> ReportStore:
    return ReportStore(db)


def get_reconciler(
    reports: ReportStore = Depends(get_report_store),
    stock: StockRecordStore = Depends(get_stock_store),
) -> ReportReconciler:
    return ReportReconciler(reports, stock)
