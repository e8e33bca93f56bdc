from typing import List

from fastapi import APIRouter, Depends, status

from core.dependencies import get_ledger, get_stock_store
from schemas.stock import Movement, MovementCreate, MovementDeleteOut, StockRecordOut, StockReplace
from services.ledger import MovementLedger
from services.stock_store import StockRecordStore

router = APIRouter()


@router.get("", response_model=StockRecordOut)
async def get_stock(store: StockRecordStore = Depends(get_stock_store)):
    """Return the stock record, creating the zero-quantity seed on first call."""
    return await store.get()


@router.put("", response_model=StockRecordOut)
async def replace_stock(
    payload: StockReplace,
    store: StockRecordStore = Depends(get_stock_store),
):
    items = {variant: item.model_dump(by_alias=True) for variant, item in payload.items.items()}
    return await store.replace(items)


@router.get("/movements", response_model=List[Movement])
async def list_movements(ledger: MovementLedger = Depends(get_ledger)):
    """Movements, newest first."""
    return await ledger.list_movements()


@router.post("/movement", response_model=StockRecordOut, status_code=status.HTTP_201_CREATED)
async def add_movement(
    payload: MovementCreate,
    ledger: MovementLedger = Depends(get_ledger),
):
    return await ledger.add_movement(payload.model, payload.type, payload.quantity, payload.meta())


@router.delete("/movement/{date}", response_model=MovementDeleteOut)
async def delete_movement(
    date: str,
    ledger: MovementLedger = Depends(get_ledger),
):
    """Remove a movement (keyed by its date) and reverse its stock change."""
    return await ledger.delete_movement(date)
