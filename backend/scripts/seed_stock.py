"""
Seed (or reset) the singleton stock record.

Default: create the zero-quantity v1/v9 record if it does not exist yet.
With --reset: set both quantities back to 0 and DROP the movement history.

Run inside docker:
  docker exec -i decore-api sh -lc "cd /app && PYTHONPATH=/app uv run python scripts/seed_stock.py [--reset]"
"""

from __future__ import annotations

import argparse
import asyncio

import structlog

from core.config import settings
from core.logging import configure_logging
from db.database import Database
from services.stock_store import StockRecordStore, seed_items

logger = structlog.get_logger(__name__)


async def main(reset: bool) -> None:
    database = Database(settings.database_url, echo=settings.database_echo)
    await database.connect()
    try:
        async with database.session_maker() as db:
            store = StockRecordStore(db, max_attempts=settings.stock_update_max_attempts)
            doc = await store.get()

            if reset:
                fresh = seed_items()

                def _reset(items, movements):
                    items.clear()
                    items.update(fresh)
                    dropped = len(movements)
                    movements.clear()
                    return dropped

                doc, dropped = await store.update(_reset)
                logger.info("stock_reset", movements_dropped=dropped)

            for variant, item in sorted(doc["items"].items()):
                print(f"{variant}: {item['model']} quantity={item['quantity']} status={item['status']}")
    finally:
        await database.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--reset", action="store_true", help="zero quantities and clear movements")
    args = parser.parse_args()
    configure_logging(settings.log_level, settings.log_json)
    asyncio.run(main(args.reset))
