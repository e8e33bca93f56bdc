from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


Variant = Literal["v1", "v9"]
MovementType = Literal["entry", "exit", "adjustment"]
StockStatus = Literal["DISPONÍVEL", "INDISPONÍVEL"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StockItem(CamelModel):
    model: str
    quantity: int = Field(ge=0)
    last_update: Optional[str] = None
    status: StockStatus = "DISPONÍVEL"

    @field_validator("model")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("model is required")
        return v


class Movement(CamelModel):
    date: Optional[str] = None
    # older movements were keyed by `timestamp` instead of `date`
    timestamp: Optional[str] = None
    type: MovementType
    variant: Optional[Variant] = None
    model: Optional[str] = None
    quantity: int
    delta: Optional[int] = None
    source: Optional[str] = None
    destination: Optional[str] = None
    responsible_user: Optional[str] = None
    observations: Optional[str] = None

    @model_validator(mode="after")
    def _date_from_timestamp(self) -> "Movement":
        if self.date is None:
            self.date = self.timestamp
        return self


class StockRecordOut(CamelModel):
    items: Dict[str, StockItem]
    movements: List[Movement]


class StockReplace(CamelModel):
    items: Dict[Variant, StockItem]

    @field_validator("items")
    @classmethod
    def _not_empty(cls, v: Dict[str, StockItem]) -> Dict[str, StockItem]:
        if not v:
            raise ValueError("items must contain at least one variant")
        return v


class MovementCreate(CamelModel):
    model: str
    type: Literal["entry", "exit"]
    quantity: int = Field(gt=0)
    source: Optional[str] = None
    destination: Optional[str] = None
    responsible_user: Optional[str] = None
    observations: Optional[str] = None

    @field_validator("model")
    @classmethod
    def _strip_model(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("model is required")
        return v

    @field_validator("source", "destination", "responsible_user", "observations")
    @classmethod
    def _strip_nullable(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    def meta(self) -> dict:
        return {
            "source": self.source,
            "destination": self.destination,
            "responsibleUser": self.responsible_user,
            "observations": self.observations,
        }


class MovementDeleteOut(CamelModel):
    message: str
    updated_stock: StockRecordOut
