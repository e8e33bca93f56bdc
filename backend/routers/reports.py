from typing import List

from fastapi import APIRouter, Depends, status

from core.dependencies import get_reconciler, get_report_store
from schemas.reports import ReportDeleteOut, ReportIn, ReportOut
from services.reconciliation import ReportReconciler
from services.reports import ReportStore

router = APIRouter()


@router.get("", response_model=List[ReportOut])
async def list_reports(reports: ReportStore = Depends(get_report_store)):
    return await reports.list()


@router.get("/{date}", response_model=ReportOut)
async def get_report(date: str, reports: ReportStore = Depends(get_report_store)):
    return await reports.get(date)


@router.post("", response_model=ReportOut, status_code=status.HTTP_201_CREATED)
async def create_report(payload: ReportIn, reports: ReportStore = Depends(get_report_store)):
    return await reports.create(payload.model_dump(by_alias=True, mode="json"))


@router.put("/{date}", response_model=ReportOut)
async def update_report(
    date: str,
    payload: ReportIn,
    reports: ReportStore = Depends(get_report_store),
):
    """Full replace; creates the report when the date is new."""
    return await reports.update(date, payload.model_dump(by_alias=True, mode="json"))


@router.delete("/{date}", response_model=ReportDeleteOut)
async def delete_report(date: str, reconciler: ReportReconciler = Depends(get_reconciler)):
    """Delete the report and take its tested/v9 totals back out of stock."""
    return await reconciler.delete_report(date)
