from __future__ import annotations

from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Literal, Optional
from decimal import Decimal
from datetime import datetime

CHANNEL_NAMES = ("virtual_store", "shopee", "mercado_livre")


class ComponentIn(BaseModel):
    product_id: int
    quantity: Decimal = Field(gt=0)


class ChannelPricingIn(BaseModel):
    # preço informado manda; sem preço, a margem gera o preço
    price: Optional[Decimal] = Field(default=None, ge=0)
    margin: Optional[Decimal] = None


def _check_channels(v):
    if v is None:
        return v
    unknown = set(v) - set(CHANNEL_NAMES)
    if unknown:
        raise ValueError(f"Canal inválido: {', '.join(sorted(unknown))}")
    return v


class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    description: Optional[str] = None
    barcode: Optional[str] = Field(default=None, max_length=64)
    sku: Optional[str] = Field(default=None, max_length=64)

    cost_price: Decimal = Field(default=Decimal("0.00"), ge=0)
    sale_price: Optional[Decimal] = Field(default=None, ge=0)
    default_profit_margin: Optional[Decimal] = None

    is_composition: bool = False
    components: list[ComponentIn] = Field(default_factory=list)
    channels: dict[str, ChannelPricingIn] = Field(default_factory=dict)

    category_ids: list[int] = Field(default_factory=list)
    image_urls: list[str] = Field(default_factory=list, max_length=3)

    manages_stock: bool = False
    sell_online: bool = False
    sell_shopee: bool = False
    sell_mercado_livre: bool = False
    quantity: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator("channels")
    @classmethod
    def known_channels(cls, v):
        return _check_channels(v)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=160)
    description: Optional[str] = None
    barcode: Optional[str] = Field(default=None, max_length=64)
    sku: Optional[str] = Field(default=None, max_length=64)

    cost_price: Optional[Decimal] = Field(default=None, ge=0)
    sale_price: Optional[Decimal] = Field(default=None, ge=0)
    default_profit_margin: Optional[Decimal] = None

    is_composition: Optional[bool] = None
    components: Optional[list[ComponentIn]] = None
    channels: Optional[dict[str, ChannelPricingIn]] = None

    category_ids: Optional[list[int]] = None
    image_urls: Optional[list[str]] = Field(default=None, max_length=3)

    manages_stock: Optional[bool] = None
    sell_online: Optional[bool] = None
    sell_shopee: Optional[bool] = None
    sell_mercado_livre: Optional[bool] = None
    quantity: Optional[Decimal] = Field(default=None, ge=0)
    active: Optional[bool] = None

    @field_validator("channels")
    @classmethod
    def known_channels(cls, v):
        return _check_channels(v)


class ProductBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    barcode: Optional[str] = None
    sku: Optional[str] = None
    cost_price: Decimal
    sale_price: Decimal
    is_composition: bool


class ProductImageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    image_url: str
    position: int


class CategoryRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class ProductComponentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    component_product_id: int
    quantity: Decimal
    component: ProductBrief


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str]
    barcode: Optional[str]
    sku: Optional[str]

    cost_price: Decimal
    sale_price: Decimal
    default_profit_margin: Optional[Decimal]

    sale_price_virtual_store: Decimal
    sale_price_shopee: Decimal
    sale_price_mercado_livre: Decimal
    profit_margin_virtual_shop: Optional[Decimal]
    profit_margin_shopee: Optional[Decimal]
    profit_margin_mercado_livre: Optional[Decimal]

    active: bool
    manages_stock: bool
    sell_online: bool
    sell_shopee: bool
    sell_mercado_livre: bool
    quantity: Decimal
    is_composition: bool
    created_at: Optional[datetime] = None

    images: list[ProductImageOut] = []
    categories: list[CategoryRef] = []
    components: list[ProductComponentOut] = []


# composição na tela
class CompositionLineOut(BaseModel):
    product_id: int
    name: str
    quantity: Decimal
    cost_price: Decimal
    sale_price: Decimal
    cost_total: Decimal
    sale_total: Decimal


class CompositionPreviewIn(BaseModel):
    components: list[ComponentIn] = Field(default_factory=list)
    action: Literal["add", "remove", "set_quantity"]
    product_id: int
    quantity: Optional[Decimal] = None
    parent_id: Optional[int] = None


class CompositionPreviewOut(BaseModel):
    ok: bool
    message: Optional[str] = None
    components: list[CompositionLineOut]
    cost: Decimal
    sale_total: Decimal
    channel_base_price: Decimal


class PriceLookupOut(BaseModel):
    product: ProductBrief
    components: list[CompositionLineOut]
    components_total: Decimal
    total_units: Decimal
