from __future__ import annotations
from pydantic import BaseModel, Field, ConfigDict, computed_field
from typing import Optional
from decimal import Decimal
from datetime import date, datetime, time

from backoffice.infra.models import AdjustmentType, OrderStatus, PaymentMethod, SaleType
from backoffice.services.order_status import label_for


class CartItemIn(BaseModel):
    product_id: int
    quantity: Decimal = Field(gt=0)


class AdjustmentIn(BaseModel):
    type: AdjustmentType = AdjustmentType.FIXED
    value: Decimal = Field(default=Decimal("0.00"), ge=0)


class DeliveryIn(BaseModel):
    customer_name: str = Field(min_length=1, max_length=140)
    customer_phone: Optional[str] = Field(default=None, max_length=20)
    delivery_date: Optional[date] = None
    delivery_time: Optional[time] = None
    cep: Optional[str] = Field(default=None, max_length=9)
    street: Optional[str] = Field(default=None, max_length=160)
    number: Optional[str] = Field(default=None, max_length=20)
    complement: Optional[str] = Field(default=None, max_length=120)
    neighborhood: Optional[str] = Field(default=None, max_length=120)
    city: Optional[str] = Field(default=None, max_length=120)
    state: Optional[str] = Field(default=None, max_length=2)
    additional_info: Optional[str] = None
    from_text: Optional[str] = Field(default=None, max_length=140)
    to_text: Optional[str] = Field(default=None, max_length=140)


class CheckoutIn(BaseModel):
    items: list[CartItemIn] = Field(min_length=1)
    sale_type: SaleType = SaleType.PICKUP
    payment_method: PaymentMethod
    notes: Optional[str] = None
    delivery_fee: Decimal = Field(default=Decimal("0.00"), ge=0)
    addition: AdjustmentIn = Field(default_factory=AdjustmentIn)
    discount: AdjustmentIn = Field(default_factory=AdjustmentIn)
    delivery: Optional[DeliveryIn] = None


class DeliveryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    customer_name: str
    customer_phone: Optional[str]
    delivery_date: Optional[datetime]
    cep: Optional[str]
    street: Optional[str]
    number: Optional[str]
    complement: Optional[str]
    neighborhood: Optional[str]
    city: Optional[str]
    state: Optional[str]
    additional_info: Optional[str]
    from_text: Optional[str]
    to_text: Optional[str]


class SaleItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    product_name: str
    quantity: Decimal
    unit_price: Decimal
    total_price: Decimal
    is_composite: bool


class ExpandedComponentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: int
    product_name: str
    quantity: Decimal
    unit_price: Decimal
    total_price: Decimal


class SaleItemDetailOut(SaleItemOut):
    components: list[ExpandedComponentOut] = []


class SaleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sale_type: SaleType
    payment_method: PaymentMethod
    status: OrderStatus
    subtotal: Decimal
    total: Decimal
    delivery_fee: Decimal
    addition_type: AdjustmentType
    addition_value: Decimal
    addition_amount: Decimal
    discount_type: AdjustmentType
    discount_value: Decimal
    discount_amount: Decimal
    notes: Optional[str]
    created_at: Optional[datetime] = None
    delivery_info: Optional[DeliveryOut] = None

    @computed_field
    @property
    def status_label(self) -> str:
        return label_for(self.status)


class SaleWithItemsOut(SaleOut):
    items: list[SaleItemOut] = []


class SaleDetailOut(SaleOut):
    items: list[SaleItemDetailOut] = []


class SaleListOut(BaseModel):
    items: list[SaleOut]
    total: int
    page: int
    page_size: int


class SaleStatusUpdate(BaseModel):
    # código (PAID) ou rótulo (Pago)
    status: str = Field(min_length=1)


class ScheduleEntryOut(BaseModel):
    sale_id: int
    customer_name: str
    customer_phone: Optional[str]
    delivery_date: Optional[datetime]
    neighborhood: Optional[str]
    status: OrderStatus
    total: Decimal

    @computed_field
    @property
    def status_label(self) -> str:
        return label_for(self.status)
