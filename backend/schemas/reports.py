from typing import List, Literal, Optional

from pydantic import Field, field_validator

from schemas.stock import CamelModel, StockRecordOut


Shift = Literal["morning", "afternoon"]


class ReportHeader(CamelModel):
    date: str
    supervisor: Optional[str] = None
    unit: Optional[str] = None
    shift: Shift = "morning"

    @field_validator("date")
    @classmethod
    def _strip_date(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("date is required")
        return v


class OperatorEntry(CamelModel):
    name: str = ""
    tested: int = Field(default=0, ge=0)
    approved: int = Field(default=0, ge=0)
    rejected: int = Field(default=0, ge=0)
    cleaned: int = Field(default=0, ge=0)
    resetados: int = Field(default=0, ge=0)
    v9: int = Field(default=0, ge=0)


class DashboardData(CamelModel):
    """Aggregates computed by the report form; stored untouched."""

    total_tested: float = 0
    total_approved: float = 0
    total_rejected: float = 0
    total_cleaned: float = 0
    total_resetados: float = 0
    total_v9: float = 0
    approval_rate: float = 0
    rejection_rate: float = 0
    date: Optional[str] = None


class ReportIn(CamelModel):
    header: ReportHeader
    morning: List[OperatorEntry] = []
    afternoon: List[OperatorEntry] = []
    dashboard_data: Optional[DashboardData] = None


class ReportOut(ReportIn):
    created_at: str
    updated_at: str


class ReportDeleteOut(CamelModel):
    message: str
    deleted_report: ReportOut
    updated_stock: StockRecordOut
