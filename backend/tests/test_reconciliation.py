"""Tests for deleting a report and rolling its totals back out of stock."""

import pytest
from sqlalchemy.exc import OperationalError

from core.exceptions import NotFoundError, StoreError
from factories import make_report, operator
from services.reconciliation import SYSTEM_USER, report_totals
from services.reports import ReportStore


async def _stock(store, v1, v9):
    await store.get()
    await store.replace({
        "v1": {"model": "ZTE 670 V1", "quantity": v1, "status": "DISPONÍVEL"},
        "v9": {"model": "ZTE 670 V9", "quantity": v9, "status": "DISPONÍVEL"},
    })


class TestReportTotals:

    def test_tested_feeds_v1_and_v9_feeds_v9(self):
        report = make_report(
            morning=[operator("Ana", tested=3, v9=1, approved=2)],
            afternoon=[operator("Bia", tested=1, v9=1), operator("Caio", tested=0, v9=0)],
        )
        assert report_totals(report) == {"v1": 4, "v9": 2}

    def test_empty_shifts(self):
        assert report_totals(make_report()) == {"v1": 0, "v9": 0}


class TestDeleteReport:

    async def test_subtracts_totals_and_appends_compensating_movements(self, store, reports, reconciler):
        await _stock(store, 10, 5)
        await reports.create(make_report(
            "2026-10-17",
            morning=[operator("Ana", tested=3, v9=1)],
            afternoon=[operator("Bia", tested=1, v9=1)],
        ))

        out = await reconciler.delete_report("2026-10-17")

        stock = out["updatedStock"]
        assert stock["items"]["v1"]["quantity"] == 6
        assert stock["items"]["v9"]["quantity"] == 3
        assert out["deletedReport"]["header"]["date"] == "2026-10-17"

        adjustments = [m for m in stock["movements"] if m["type"] == "adjustment"]
        assert {m["variant"]: m["quantity"] for m in adjustments} == {"v1": 4, "v9": 2}
        assert all(m["responsibleUser"] == SYSTEM_USER for m in adjustments)
        assert all("2026-10-17" in m["observations"] for m in adjustments)
        assert len({m["date"] for m in adjustments}) == 2

        with pytest.raises(NotFoundError):
            await reports.get("2026-10-17")

    async def test_second_delete_is_not_found_and_stock_untouched(self, store, reports, reconciler):
        await _stock(store, 10, 5)
        await reports.create(make_report("2026-10-17", morning=[operator("Ana", tested=4, v9=2)]))
        await reconciler.delete_report("2026-10-17")

        with pytest.raises(NotFoundError, match="Report not found"):
            await reconciler.delete_report("2026-10-17")
        doc = await store.find()
        assert doc["items"]["v1"]["quantity"] == 6
        assert doc["items"]["v9"]["quantity"] == 3
        assert len(doc["movements"]) == 2

    async def test_clamps_at_zero(self, store, reports, reconciler):
        await _stock(store, 2, 0)
        await reports.create(make_report("2026-10-17", morning=[operator("Ana", tested=5)]))

        out = await reconciler.delete_report("2026-10-17")

        v1 = out["updatedStock"]["items"]["v1"]
        assert v1["quantity"] == 0
        [movement] = out["updatedStock"]["movements"]
        assert movement["quantity"] == 5
        assert movement["delta"] == -2

    async def test_compensating_movement_can_be_reversed(self, store, ledger, reports, reconciler):
        await _stock(store, 2, 0)
        await reports.create(make_report("2026-10-17", morning=[operator("Ana", tested=5)]))
        out = await reconciler.delete_report("2026-10-17")

        date = out["updatedStock"]["movements"][0]["date"]
        restored = await ledger.delete_movement(date)
        assert restored["updatedStock"]["items"]["v1"]["quantity"] == 2

    async def test_only_variants_with_totals_get_movements(self, store, reports, reconciler):
        await _stock(store, 10, 5)
        await reports.create(make_report("2026-10-17", morning=[operator("Ana", v9=3)]))

        out = await reconciler.delete_report("2026-10-17")
        assert [m["variant"] for m in out["updatedStock"]["movements"]] == ["v9"]
        assert out["updatedStock"]["items"]["v1"]["quantity"] == 10

    async def test_zero_totals_still_delete_report(self, store, reports, reconciler):
        await _stock(store, 1, 1)
        await reports.create(make_report("2026-10-17", morning=[operator("Ana")]))

        out = await reconciler.delete_report("2026-10-17")
        assert out["updatedStock"]["movements"] == []
        with pytest.raises(NotFoundError):
            await reports.get("2026-10-17")

    async def test_missing_stock_aborts_and_keeps_report(self, reports, reconciler):
        await reports.create(make_report("2026-10-17", morning=[operator("Ana", tested=1)]))

        with pytest.raises(NotFoundError, match="Stock not found"):
            await reconciler.delete_report("2026-10-17")
        assert (await reports.get("2026-10-17"))["header"]["date"] == "2026-10-17"

    async def test_missing_report_mutates_nothing(self, store, reconciler):
        await _stock(store, 3, 3)
        with pytest.raises(NotFoundError):
            await reconciler.delete_report("1999-01-01")
        doc = await store.find()
        assert doc["items"]["v1"]["quantity"] == 3
        assert doc["movements"] == []

    async def test_failed_report_delete_rolls_back_stock(self, monkeypatch, store, reports, reconciler):
        await _stock(store, 10, 5)
        await reports.create(make_report("2026-10-17", morning=[operator("Ana", tested=3, v9=1)]))

        async def _fail(date, expected_updated_at=None):
            raise OperationalError("DELETE FROM reports", {}, Exception("disk I/O error"))

        monkeypatch.setattr(reports, "delete", _fail)

        with pytest.raises(StoreError):
            await reconciler.delete_report("2026-10-17")

        doc = await store.find()
        assert doc["items"]["v1"]["quantity"] == 10
        assert doc["items"]["v9"]["quantity"] == 5
        assert doc["movements"] == []
        monkeypatch.undo()
        assert (await reports.get("2026-10-17"))["header"]["date"] == "2026-10-17"

    async def test_report_edited_mid_delete_is_retried_with_new_totals(
        self, monkeypatch, database, store, reports, reconciler
    ):
        await _stock(store, 10, 5)
        await reports.create(make_report("2026-10-17", morning=[operator("Ana", tested=4, v9=2)]))

        real_get = reports.get
        calls = []

        async def _get_then_edit(date):
            doc = await real_get(date)
            calls.append(date)
            if len(calls) == 1:
                async with database.session_maker() as s:
                    await ReportStore(s).update(date, make_report(date, morning=[operator("Ana", tested=1, v9=1)]))
            return doc

        monkeypatch.setattr(reports, "get", _get_then_edit)

        out = await reconciler.delete_report("2026-10-17")

        assert len(calls) == 2
        assert out["updatedStock"]["items"]["v1"]["quantity"] == 9
        assert out["updatedStock"]["items"]["v9"]["quantity"] == 4
        assert {m["variant"]: m["quantity"] for m in out["updatedStock"]["movements"]} == {"v1": 1, "v9": 1}
        monkeypatch.undo()
        with pytest.raises(NotFoundError):
            await reports.get("2026-10-17")
