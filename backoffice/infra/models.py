from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import (
    String, Integer, Boolean, DateTime, Numeric, ForeignKey, Text, Table, Column,
    Enum as SAEnum, UniqueConstraint, Index, func
)

from sqlalchemy.orm import (
    DeclarativeBase, Mapped, mapped_column, relationship
)


# base
class Base(DeclarativeBase):
    pass

# enums
class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    STAFF = "STAFF"

class SaleType(str, enum.Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"

class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PIX = "pix"

class AdjustmentType(str, enum.Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"

class OrderStatus(str, enum.Enum):
    # códigos persistidos; os rótulos de tela ficam em services/order_status.py
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    PAID = "PAID"
    PACKED = "PACKED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELED = "CANCELED"
    RETURNED = "RETURNED"
    REFUNDED = "REFUNDED"
    AWAITING_PICKUP = "AWAITING_PICKUP"


product_categories = Table(
    "product_categories",
    Base.metadata,
    Column("product_id", ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
)


# models
class UserORM(Base):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str] = mapped_column(String(160), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    role: Mapped[UserRole] = mapped_column(
        SAEnum(UserRole, name="user_role"), nullable=False, default=UserRole.STAFF
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

class CategoryORM(Base):
    __tablename__ = "categories"
    __table_args__ = (
        UniqueConstraint("name", name="uq_categories_name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(80), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    products: Mapped[List["ProductORM"]] = relationship(
        secondary=product_categories, back_populates="categories"
    )

class ProductORM(Base):
    __tablename__ = "products"
    __table_args__ = (
        Index("ix_products_barcode", "barcode"),
        Index("ix_products_sku", "sku"),
        Index("ix_products_active", "active"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    name: Mapped[str] = mapped_column(String(160), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    barcode: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    sku: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    cost_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    sale_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    default_profit_margin: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 2), nullable=True)

    # canais online
    sale_price_virtual_store: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    sale_price_shopee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    sale_price_mercado_livre: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    profit_margin_virtual_shop: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 2), nullable=True)
    profit_margin_shopee: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 2), nullable=True)
    profit_margin_mercado_livre: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 2), nullable=True)

    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    manages_stock: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sell_online: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sell_shopee: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sell_mercado_livre: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False, default=0)

    is_composition: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    images: Mapped[List["ProductImageORM"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductImageORM.position",
    )
    categories: Mapped[List["CategoryORM"]] = relationship(
        secondary=product_categories, back_populates="products"
    )
    components: Mapped[List["ProductComponentORM"]] = relationship(
        foreign_keys="ProductComponentORM.parent_product_id",
        back_populates="parent",
        cascade="all, delete-orphan",
        order_by="ProductComponentORM.id",
    )

class ProductImageORM(Base):
    __tablename__ = "product_images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False)
    image_url: Mapped[str] = mapped_column(String(500), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    product: Mapped["ProductORM"] = relationship(back_populates="images")

class ProductComponentORM(Base):
    __tablename__ = "product_components"
    __table_args__ = (
        UniqueConstraint(
            "parent_product_id", "component_product_id", name="uq_product_components_pair"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    parent_product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False)
    component_product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False)

    # fracionado (ex.: por peso)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)

    parent: Mapped["ProductORM"] = relationship(
        foreign_keys=[parent_product_id], back_populates="components"
    )
    component: Mapped["ProductORM"] = relationship(foreign_keys=[component_product_id])

class SaleORM(Base):
    __tablename__ = "sales"
    __table_args__ = (
        Index("ix_sales_status", "status"),
        Index("ix_sales_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    sale_type: Mapped[SaleType] = mapped_column(
        SAEnum(SaleType, name="sale_type"), nullable=False, default=SaleType.PICKUP
    )
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SAEnum(PaymentMethod, name="payment_method"), nullable=False
    )

    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(OrderStatus, name="order_status"),
        nullable=False,
        default=OrderStatus.PENDING,
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    delivery_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)

    addition_type: Mapped[AdjustmentType] = mapped_column(
        SAEnum(AdjustmentType, name="addition_type"), nullable=False, default=AdjustmentType.FIXED
    )
    addition_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    addition_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)

    discount_type: Mapped[AdjustmentType] = mapped_column(
        SAEnum(AdjustmentType, name="discount_type"), nullable=False, default=AdjustmentType.FIXED
    )
    discount_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # relações
    items: Mapped[List["SaleItemORM"]] = relationship(
        back_populates="sale", cascade="all, delete-orphan", order_by="SaleItemORM.id"
    )
    delivery_info: Mapped[Optional["DeliveryInfoORM"]] = relationship(
        back_populates="sale", uselist=False, cascade="all, delete-orphan"
    )

class SaleItemORM(Base):
    __tablename__ = "sale_items"
    __table_args__ = (
        Index("ix_sale_items_sale_id", "sale_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    sale_id: Mapped[int] = mapped_column(ForeignKey("sales.id"), nullable=False)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False)

    # snapshot do produto no momento da venda
    product_name: Mapped[str] = mapped_column(String(160), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    is_composite: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    sale: Mapped["SaleORM"] = relationship(back_populates="items")
    product: Mapped["ProductORM"] = relationship()

class DeliveryInfoORM(Base):
    __tablename__ = "delivery_infos"
    __table_args__ = (
        UniqueConstraint("sale_id", name="uq_delivery_infos_sale_id"),  # 1:1 com a venda
        Index("ix_delivery_infos_date", "delivery_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    sale_id: Mapped[int] = mapped_column(ForeignKey("sales.id"), nullable=False)

    customer_name: Mapped[str] = mapped_column(String(140), nullable=False)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    delivery_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    cep: Mapped[Optional[str]] = mapped_column(String(9), nullable=True)
    street: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    complement: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    neighborhood: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)

    additional_info: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    from_text: Mapped[Optional[str]] = mapped_column(String(140), nullable=True)
    to_text: Mapped[Optional[str]] = mapped_column(String(140), nullable=True)

    sale: Mapped["SaleORM"] = relationship(back_populates="delivery_info")
