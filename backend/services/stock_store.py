"""
Stock Record Store.

The whole inventory lives in one `stock_records` row (the singleton
document). Every write goes through `update()`, a compare-and-swap on the
row's `version` column: read, mutate copies, `UPDATE ... WHERE version = v`.
A writer that loses the race rolls back and recomputes from fresh state, so
concurrent requests never overwrite each other's quantity change or
movement append.
"""

import copy
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import NotFoundError, StockServiceError, StoreError, ValidationError
from db.stock import STOCK_RECORD_ID, StockRecord

logger = structlog.get_logger(__name__)

DEFAULT_STATUS = "DISPONÍVEL"

# variant key -> model name of the seed record
DEFAULT_MODELS = {
    "v1": "ZTE 670 V1",
    "v9": "ZTE 670 V9",
}

Items = Dict[str, Dict[str, Any]]
Movements = List[Dict[str, Any]]
Mutation = Callable[[Items, Movements], Any]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def seed_items(now: Optional[str] = None) -> Items:
    now = now or utc_now_iso()
    return {
        variant: {"model": model, "quantity": 0, "lastUpdate": now, "status": DEFAULT_STATUS}
        for variant, model in DEFAULT_MODELS.items()
    }


@dataclass
class _Snapshot:
    items: Items
    movements: Movements
    version: int


class StockRecordStore:
    def __init__(self, session: AsyncSession, max_attempts: int = 5):
        self.session = session
        self.max_attempts = max(1, max_attempts)

    async def _load(self) -> Optional[_Snapshot]:
        # Column select: rows bypass the ORM identity map, so retries always see fresh data
        res = await self.session.execute(
            select(StockRecord.items, StockRecord.movements, StockRecord.version).where(
                StockRecord.id == STOCK_RECORD_ID
            )
        )
        row = res.first()
        if row is None:
            return None
        return _Snapshot(
            items=copy.deepcopy(row.items or {}),
            movements=copy.deepcopy(row.movements or []),
            version=int(row.version),
        )

    async def find(self) -> Optional[dict]:
        """Return the record document, or None when it was never created."""
        try:
            snap = await self._load()
        except SQLAlchemyError as e:
            raise StoreError("Failed to read stock") from e
        if snap is None:
            return None
        return {"items": snap.items, "movements": snap.movements}

    async def get(self) -> dict:
        """Return the record, seeding a zero-quantity one on first access."""
        doc = await self.find()
        if doc is not None:
            return doc

        doc = {"items": seed_items(), "movements": []}
        self.session.add(StockRecord(id=STOCK_RECORD_ID, items=doc["items"], movements=[], version=1))
        try:
            await self.session.commit()
        except IntegrityError:
            # Another request seeded it first; use theirs.
            await self.session.rollback()
            logger.info("stock_seed_race_lost")
            existing = await self.find()
            if existing is None:
                raise StoreError("Stock record vanished after a concurrent seed")
            return existing
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise StoreError("Failed to create stock") from e

        logger.info("stock_seeded", variants=sorted(doc["items"]))
        return doc

    async def replace(self, items: Items) -> dict:
        """Overwrite the items map, stamping lastUpdate. Creates the record if absent."""
        if not items:
            raise ValidationError("Invalid stock data: items is required")

        now = utc_now_iso()
        stamped = {}
        for variant, item in items.items():
            stamped[variant] = {**item, "lastUpdate": now}

        if await self.find() is None:
            await self.get()

        def _overwrite(current_items: Items, movements: Movements) -> None:
            current_items.clear()
            current_items.update(stamped)

        doc, _ = await self.update(_overwrite)
        logger.info("stock_replaced", variants=sorted(stamped))
        return doc

    async def update(
        self,
        mutate: Mutation,
        before_commit: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> tuple:
        """Apply `mutate(items, movements)` atomically and return (document, mutate result).

        `mutate` edits the copies in place and may raise to abort; nothing is
        written then. `before_commit` runs inside the same transaction after
        the stock row is written.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                snap = await self._load()
                if snap is None:
                    raise NotFoundError("Stock not found")

                result = mutate(snap.items, snap.movements)

                res = await self.session.execute(
                    update(StockRecord)
                    .where(StockRecord.id == STOCK_RECORD_ID)
                    .where(StockRecord.version == snap.version)
                    .values(
                        items=snap.items,
                        movements=snap.movements,
                        version=snap.version + 1,
                        updated_at=datetime.now(timezone.utc),
                    )
                    .execution_options(synchronize_session=False)
                )
                if res.rowcount != 1:
                    await self.session.rollback()
                    logger.info("stock_update_conflict", attempt=attempt, version=snap.version)
                    continue

                if before_commit is not None:
                    await before_commit()
                await self.session.commit()
            except StockServiceError:
                await self.session.rollback()
                raise
            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.exception("stock_update_failed", attempt=attempt)
                raise StoreError("Failed to update stock") from e

            return {"items": snap.items, "movements": snap.movements}, result

        raise StoreError(f"Stock update kept conflicting after {self.max_attempts} attempts")
