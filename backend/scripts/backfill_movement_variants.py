"""
Backfill `variant`, `delta` and `date` on movements written by the old service.

Old movements only carried a free-text `observations` field that sometimes
named the hardware variant ("... V9 ..."), a `timestamp` instead of `date`,
and no signed change. Deleting such a movement needs an explicit variant, so
this script derives one where the text is unambiguous and reports the rest.

Run inside docker:
  docker exec -i decore-api sh -lc "cd /app && PYTHONPATH=/app uv run python scripts/backfill_movement_variants.py [--dry-run]"
"""

from __future__ import annotations

import argparse
import asyncio
import re
from typing import Optional

import structlog

from core.config import settings
from core.logging import configure_logging
from db.database import Database
from services.ledger import SIGN_BY_TYPE
from services.stock_store import StockRecordStore

logger = structlog.get_logger(__name__)

_VARIANT_MARKERS = {
    "v1": re.compile(r"\bv\s*1\b", re.IGNORECASE),
    "v9": re.compile(r"\bv\s*9\b", re.IGNORECASE),
}


def guess_variant(movement: dict, items: dict) -> Optional[str]:
    """Variant from the stored model name first, then from the observations text."""
    model = movement.get("model")
    for variant, item in items.items():
        if model and item.get("model") == model:
            return variant

    text = movement.get("observations") or ""
    hits = [v for v, rx in _VARIANT_MARKERS.items() if rx.search(text)]
    return hits[0] if len(hits) == 1 else None


def backfill(items: dict, movements: list) -> dict:
    counts = {"variant": 0, "delta": 0, "date": 0, "unresolved": 0}
    for m in movements:
        if not m.get("date") and m.get("timestamp"):
            m["date"] = m["timestamp"]
            counts["date"] += 1

        if not m.get("variant"):
            variant = guess_variant(m, items)
            if variant is None:
                counts["unresolved"] += 1
                logger.warning("movement_variant_unresolved", date=m.get("date"), observations=m.get("observations"))
            else:
                m["variant"] = variant
                counts["variant"] += 1

        if m.get("delta") is None and m.get("type") in SIGN_BY_TYPE:
            m["delta"] = SIGN_BY_TYPE[m["type"]] * int(m.get("quantity") or 0)
            counts["delta"] += 1
    return counts


async def main(dry_run: bool) -> None:
    database = Database(settings.database_url, echo=settings.database_echo)
    await database.connect()
    try:
        async with database.session_maker() as db:
            store = StockRecordStore(db, max_attempts=settings.stock_update_max_attempts)
            if dry_run:
                doc = await store.get()
                counts = backfill(doc["items"], doc["movements"])
            else:
                _, counts = await store.update(backfill)
            print(f"{'Would update' if dry_run else 'Updated'}: {counts}")
    finally:
        await database.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()
    configure_logging(settings.log_level, settings.log_json)
    asyncio.run(main(args.dry_run))
