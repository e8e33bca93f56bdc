"""Report Store: one shift report per date. Never touches stock."""

from typing import List, Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import DuplicateReportError, NotFoundError, StoreError, ValidationError
from db.report import Report
from services.stock_store import utc_now_iso

logger = structlog.get_logger(__name__)


def _apply_document(report: Report, doc: dict) -> None:
    report.header = doc["header"]
    report.morning = doc.get("morning") or []
    report.afternoon = doc.get("afternoon") or []
    report.dashboard_data = doc.get("dashboardData")


class ReportStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _find(self, date: str):
        res = await self.session.execute(select(Report).where(Report.date == date))
        return res.scalar_one_or_none()

    async def get(self, date: str) -> dict:
        try:
            report = await self._find(date)
        except SQLAlchemyError as e:
            raise StoreError("Failed to fetch report") from e
        if report is None:
            raise NotFoundError("Report not found")
        return report.to_document

    async def list(self) -> List[dict]:
        try:
            res = await self.session.execute(select(Report).order_by(Report.date.desc()))
        except SQLAlchemyError as e:
            raise StoreError("Failed to fetch reports") from e
        return [r.to_document for r in res.scalars().all()]

    async def create(self, doc: dict) -> dict:
        """Insert a new report. A second report for the same date is rejected."""
        date = doc["header"]["date"]
        now = utc_now_iso()
        report = Report(date=date, created_at=now, updated_at=now)
        _apply_document(report, doc)

        try:
            if await self._find(date) is not None:
                raise DuplicateReportError(f"A report for {date} already exists")
            self.session.add(report)
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise DuplicateReportError(f"A report for {date} already exists") from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise StoreError("Failed to save report") from e

        logger.info("report_created", date=date)
        return report.to_document

    async def update(self, date: str, doc: dict) -> dict:
        """Full replace keyed by date; inserts when the report does not exist yet."""
        if doc["header"]["date"] != date:
            raise ValidationError("Report header date does not match the requested date")

        # A concurrent insert of the same date loses on the primary key; the
        # second pass then finds that row and updates it.
        for attempt in (1, 2):
            now = utc_now_iso()
            try:
                report = await self._find(date)
                created = report is None
                if created:
                    report = Report(date=date, created_at=now)
                    self.session.add(report)
                _apply_document(report, doc)
                report.updated_at = now
                await self.session.commit()
                break
            except IntegrityError as e:
                await self.session.rollback()
                if attempt == 2:
                    raise StoreError("Failed to update report") from e
                logger.info("report_insert_race_lost", date=date)
            except SQLAlchemyError as e:
                await self.session.rollback()
                raise StoreError("Failed to update report") from e

        logger.info("report_saved", date=date, created=created)
        return report.to_document

    async def delete(self, date: str, expected_updated_at: Optional[str] = None) -> int:
        """Delete within the caller's transaction; the caller commits.

        With `expected_updated_at`, only the version the caller read is deleted.
        Returns the number of rows removed.
        """
        stmt = delete(Report).where(Report.date == date)
        if expected_updated_at is not None:
            stmt = stmt.where(Report.updated_at == expected_updated_at)
        res = await self.session.execute(stmt.execution_options(synchronize_session=False))
        return res.rowcount
