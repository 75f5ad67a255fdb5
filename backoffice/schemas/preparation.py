from __future__ import annotations

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from decimal import Decimal

from backoffice.infra.models import OrderStatus, SaleType


class PickComponentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: int
    product_name: str
    quantity: Decimal
    picked: Decimal
    fully_picked: bool


class PickLineOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item_id: int
    product_id: int
    product_name: str
    quantity: Decimal
    is_composite: bool
    picked: Decimal
    fully_picked: bool
    components: list[PickComponentOut] = []


class PicklistOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sale_id: int
    sale_type: SaleType
    status: OrderStatus
    complete: bool
    lines: list[PickLineOut]


class PickIn(BaseModel):
    item_id: int
    component_id: Optional[int] = None  # product_id do componente
    quantity: Decimal = Field(ge=0)


class CompletePreparationIn(BaseModel):
    picks: list[PickIn] = Field(default_factory=list)


class PreparationOutcomeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ok: bool
    status: OrderStatus
    message: str
    offer_receipt: bool
    pending_item_ids: list[int] = []
