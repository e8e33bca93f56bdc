from sqlalchemy import JSON, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from .database import Base

STOCK_RECORD_ID = "stock"


class StockRecord(Base):
    """Singleton stock document: per-variant items plus the embedded movement list."""

    __tablename__ = "stock_records"

    id = Column(String, primary_key=True, default=STOCK_RECORD_ID)

    # {"v1": {"model", "quantity", "lastUpdate", "status"}, "v9": {...}}
    items = Column(JSON, nullable=False, default=dict)
    # ordered list of movement documents, oldest first
    movements = Column(JSON, nullable=False, default=list)

    # bumped on every write; guards the compare-and-swap update
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
