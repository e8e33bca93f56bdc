"""
Report -> stock reconciliation.

Deleting a shift report takes back what the report contributed to stock:
`tested` counts come off v1 and `v9` counts come off v9, clamped at zero.
The quantity change, the compensating movements and the report delete are
one transaction; if any of them fails nothing is written.
"""

from typing import Dict, Iterable, Tuple

import structlog

from core.exceptions import NotFoundError, StockServiceError, StoreError
from services.ledger import unique_timestamp
from services.reports import ReportStore
from services.stock_store import Items, Movements, StockRecordStore, utc_now_iso

logger = structlog.get_logger(__name__)

SYSTEM_USER = "Sistema"
MAX_REPORT_ATTEMPTS = 3


class _ReportChanged(StockServiceError):
    """The report was edited or removed between reading it and deleting it."""


def _entries(report: dict) -> Iterable[dict]:
    yield from report.get("morning") or []
    yield from report.get("afternoon") or []


def report_totals(report: dict) -> Dict[str, int]:
    """Stock contribution per variant. `tested` feeds v1, `v9` feeds v9."""
    total_v1 = 0
    total_v9 = 0
    for entry in _entries(report):
        total_v1 += int(entry.get("tested") or 0)
        total_v9 += int(entry.get("v9") or 0)
    return {"v1": total_v1, "v9": total_v9}


def compensate(items: Items, movements: Movements, totals: Dict[str, int], report_date: str) -> Dict[str, Tuple[int, int]]:
    """Subtract the report totals (clamped at 0) and append one adjustment per affected variant.

    Returns {variant: (old quantity, new quantity)}.
    """
    changes = {}
    for variant, total in totals.items():
        if total <= 0:
            continue
        item = items.get(variant)
        if item is None:
            continue

        now = unique_timestamp(movements, utc_now_iso())
        current = int(item.get("quantity") or 0)
        new_quantity = max(0, current - total)
        item["quantity"] = new_quantity
        item["lastUpdate"] = now

        movements.append(
            {
                "date": now,
                "type": "adjustment",
                "variant": variant,
                "model": item.get("model"),
                "quantity": total,
                # what was actually removed; reversing the movement restores exactly this
                "delta": new_quantity - current,
                "source": "Relatório",
                "destination": None,
                "responsibleUser": SYSTEM_USER,
                "observations": f"Estorno do relatório de {report_date} ({variant.upper()})",
            }
        )
        changes[variant] = (current, new_quantity)
    return changes


class ReportReconciler:
    def __init__(self, reports: ReportStore, stock: StockRecordStore):
        self.reports = reports
        self.stock = stock

    async def delete_report(self, date: str) -> dict:
        for attempt in range(1, MAX_REPORT_ATTEMPTS + 1):
            report = await self.reports.get(date)
            totals = report_totals(report)

            async def _delete_report() -> None:
                removed = await self.reports.delete(date, expected_updated_at=report["updatedAt"])
                if removed != 1:
                    raise _ReportChanged(f"Report {date} changed during deletion")

            try:
                stock, changes = await self.stock.update(
                    lambda items, movements: compensate(items, movements, totals, date),
                    before_commit=_delete_report,
                )
            except _ReportChanged:
                logger.info("report_delete_retry", date=date, attempt=attempt)
                continue
            except NotFoundError as e:
                raise NotFoundError("Stock not found; report was not deleted") from e

            logger.info("report_deleted", date=date, totals=totals, changes=changes)
            return {
                "message": "Report deleted successfully",
                "deletedReport": report,
                "updatedStock": stock,
            }

        raise StoreError(f"Report {date} kept changing during deletion")
