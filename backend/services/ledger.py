"""
Movement ledger: inbound/outbound adjustments to the singleton stock record.

Every movement carries the variant it touched and the signed change it
applied (`delta`), so deleting it later reverses exactly that change.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import structlog

from core.exceptions import InsufficientStockError, NotFoundError, ValidationError
from services.stock_store import Items, Movements, StockRecordStore, utc_now_iso

logger = structlog.get_logger(__name__)

SIGN_BY_TYPE = {"entry": 1, "exit": -1}


def resolve_variant(items: Items, model: str) -> str:
    """Map a model name to its variant key. Exact match only."""
    for variant, item in items.items():
        if item.get("model") == model:
            return variant
    known = ", ".join(sorted(str(i.get("model")) for i in items.values()))
    raise ValidationError(f"Unknown model '{model}'. Known models: {known}")


def signed_delta(movement: Dict[str, Any]) -> int:
    if movement.get("delta") is not None:
        return int(movement["delta"])
    # Movements written before `delta` existed
    sign = SIGN_BY_TYPE.get(movement.get("type"))
    if sign is None:
        raise ValidationError(f"Cannot derive the stock change of a '{movement.get('type')}' movement")
    return sign * int(movement.get("quantity") or 0)


def unique_timestamp(movements: Movements, now: Optional[str] = None) -> str:
    """Movement dates double as keys; bump by a microsecond until unused."""
    stamp = now or utc_now_iso()
    taken = {m.get("date") for m in movements}
    while stamp in taken:
        stamp = (datetime.fromisoformat(stamp) + timedelta(microseconds=1)).isoformat(timespec="microseconds")
    return stamp


def apply_delta(items: Items, variant: str, delta: int, now: str) -> int:
    """Set the variant's new quantity or raise; returns the new quantity."""
    item = items.get(variant)
    if item is None:
        raise NotFoundError(f"Variant '{variant}' not found in stock")
    current = int(item.get("quantity") or 0)
    new_quantity = current + delta
    if new_quantity < 0:
        raise InsufficientStockError(variant, current, delta)
    item["quantity"] = new_quantity
    item["lastUpdate"] = now
    return new_quantity


def _movement_key(movement: Dict[str, Any]) -> Optional[str]:
    return movement.get("date") or movement.get("timestamp")


def _sort_key(movement: Dict[str, Any]) -> datetime:
    raw = _movement_key(movement) or ""
    try:
        parsed = datetime.fromisoformat(raw)
    except (TypeError, ValueError):
        return datetime.min
    # Naive legacy stamps are taken as UTC
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def sort_movements(movements: Movements) -> Movements:
    return sorted(movements, key=_sort_key, reverse=True)


class MovementLedger:
    def __init__(self, store: StockRecordStore):
        self.store = store

    async def add_movement(
        self,
        model: str,
        movement_type: str,
        quantity: int,
        meta: Optional[Dict[str, Any]] = None,
    ) -> dict:
        if movement_type not in SIGN_BY_TYPE:
            raise ValidationError("Movement type must be 'entry' or 'exit'")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise ValidationError("Movement quantity must be a positive integer")

        delta = SIGN_BY_TYPE[movement_type] * quantity
        meta = meta or {}

        def _append(items: Items, movements: Movements) -> dict:
            variant = resolve_variant(items, model)
            now = unique_timestamp(movements)
            new_quantity = apply_delta(items, variant, delta, now)
            movement = {
                "date": now,
                "type": movement_type,
                "variant": variant,
                "model": model,
                "quantity": quantity,
                "delta": delta,
                "source": meta.get("source"),
                "destination": meta.get("destination"),
                "responsibleUser": meta.get("responsibleUser"),
                "observations": meta.get("observations"),
            }
            movements.append(movement)
            return {"variant": variant, "quantity": new_quantity, "date": now}

        doc, applied = await self.store.update(_append)
        logger.info("movement_added", type=movement_type, delta=delta, **applied)
        return doc

    async def delete_movement(self, date: str) -> dict:
        def _remove(items: Items, movements: Movements) -> dict:
            index = next((i for i, m in enumerate(movements) if _movement_key(m) == date), None)
            if index is None:
                raise NotFoundError("Movement not found")
            movement = movements[index]

            variant = movement.get("variant")
            if not variant:
                raise ValidationError(
                    "Movement has no variant recorded; run scripts/backfill_movement_variants.py"
                )
            reversal = -signed_delta(movement)
            new_quantity = apply_delta(items, variant, reversal, utc_now_iso())
            del movements[index]
            return {"variant": variant, "reversal": reversal, "quantity": new_quantity}

        doc, applied = await self.store.update(_remove)
        logger.info("movement_deleted", date=date, **applied)
        return {"message": "Movement deleted successfully", "updatedStock": doc}

    async def list_movements(self) -> List[Dict[str, Any]]:
        doc = await self.store.get()
        return sort_movements(doc["movements"])
