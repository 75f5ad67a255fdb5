from __future__ import annotations

from pydantic import BaseModel, Field
from typing import Optional
from decimal import Decimal
from datetime import datetime

from backoffice.schemas.sales import CartItemIn, ExpandedComponentOut


class QuoteIn(BaseModel):
    items: list[CartItemIn] = Field(min_length=1)
    customer_name: Optional[str] = Field(default=None, max_length=140)
    notes: Optional[str] = None


class QuoteLineOut(BaseModel):
    product_id: int
    name: str
    is_composition: bool
    quantity: Decimal
    unit_price: Decimal
    total_price: Decimal
    components: list[ExpandedComponentOut] = []


class QuoteOut(BaseModel):
    lines: list[QuoteLineOut]
    total: Decimal
    issued_at: datetime
    valid_until: datetime
    customer_name: Optional[str] = None
    notes: Optional[str] = None
