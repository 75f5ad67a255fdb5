# backoffice/services/sales_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Optional, Sequence, Union

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from backoffice.infra.models import (
    AdjustmentType,
    DeliveryInfoORM,
    OrderStatus,
    PaymentMethod,
    ProductComponentORM,
    ProductORM,
    SaleItemORM,
    SaleORM,
    SaleType,
)
from backoffice.services.composition import ExpandedComponent, expand_sale_item, lines_from_relations
from backoffice.services.errors import NotFoundError, StoreError, store_write
from backoffice.services.money import ZERO, apply_adjustment, quantize_money, to_decimal
from backoffice.services.order_status import INITIAL_STATUS, coerce_status

logger = logging.getLogger(__name__)


@dataclass
class CartLine:
    product_id: int
    quantity: Decimal


@dataclass
class Adjustment:
    type: AdjustmentType = AdjustmentType.FIXED
    value: Decimal = ZERO


@dataclass
class DeliveryData:
    customer_name: str
    customer_phone: Optional[str] = None
    delivery_date: Optional[date] = None
    delivery_time: Optional[time] = None
    cep: Optional[str] = None
    street: Optional[str] = None
    number: Optional[str] = None
    complement: Optional[str] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    additional_info: Optional[str] = None
    from_text: Optional[str] = None
    to_text: Optional[str] = None


@dataclass
class SaleTotals:
    subtotal: Decimal
    addition_amount: Decimal
    discount_amount: Decimal
    delivery_fee: Decimal
    total: Decimal


@dataclass
class SaleItemDetail:
    item: SaleItemORM
    components: list[ExpandedComponent] = field(default_factory=list)


# helpers
def _quantity(v) -> Decimal:
    q = to_decimal(v)
    if q <= 0:
        raise ValueError("Quantidade deve ser maior que zero.")
    return q.quantize(Decimal("0.001"))


def compute_totals(
    *,
    subtotal: Decimal,
    sale_type: SaleType,
    delivery_fee: Decimal = ZERO,
    addition: Optional[Adjustment] = None,
    discount: Optional[Adjustment] = None,
) -> SaleTotals:
    """
    total = subtotal + acréscimo - desconto + (taxa de entrega se for entrega)
    """
    addition = addition or Adjustment()
    discount = discount or Adjustment()

    subtotal = quantize_money(subtotal)
    fee = quantize_money(delivery_fee)
    if fee < 0:
        raise ValueError("Taxa de entrega não pode ser negativa.")

    addition_amount = apply_adjustment(subtotal, addition.type.value, addition.value)
    discount_amount = apply_adjustment(subtotal, discount.type.value, discount.value)
    if discount_amount > subtotal + addition_amount:
        raise ValueError("Desconto maior que o valor da venda.")

    applied_fee = fee if sale_type == SaleType.DELIVERY else ZERO
    total = quantize_money(subtotal + addition_amount - discount_amount + applied_fee)
    return SaleTotals(subtotal, addition_amount, discount_amount, applied_fee, total)


def _delivery_datetime(d: DeliveryData) -> Optional[datetime]:
    if d.delivery_date is None:
        return None
    return datetime.combine(d.delivery_date, d.delivery_time or time(0, 0))


# use cases - services
def checkout(
    db: Session,
    *,
    items: Sequence[CartLine],
    sale_type: SaleType,
    payment_method: PaymentMethod,
    notes: Optional[str] = None,
    delivery_fee: Decimal = ZERO,
    addition: Optional[Adjustment] = None,
    discount: Optional[Adjustment] = None,
    delivery: Optional[DeliveryData] = None,
) -> SaleORM:
    """
    Fecha a venda: venda, itens e entrega gravados numa única transação.
    Se qualquer passo falhar nada fica gravado (sem venda órfã).
    rules:
      - carrinho não pode estar vazio
      - preço unitário é o preço de venda do produto no momento
      - entrega exige dados de entrega; retirada não aceita
    """
    if not items:
        raise ValueError("Adicione produtos ao carrinho antes de finalizar a venda.")
    if sale_type == SaleType.DELIVERY and delivery is None:
        raise ValueError("Venda para entrega precisa dos dados de entrega.")
    if sale_type == SaleType.PICKUP and delivery is not None:
        raise ValueError("Venda para retirada não tem dados de entrega.")
    if delivery is not None and not (delivery.customer_name or "").strip():
        raise ValueError("Nome do cliente é obrigatório para entrega.")

    # junta linhas repetidas do mesmo produto
    merged: dict[int, Decimal] = {}
    for line in items:
        merged[line.product_id] = merged.get(line.product_id, Decimal("0")) + _quantity(line.quantity)

    products = {
        p.id: p
        for p in db.execute(select(ProductORM).where(ProductORM.id.in_(list(merged)))).scalars().all()
    }

    sale_items: list[SaleItemORM] = []
    subtotal = ZERO
    for product_id, qty in merged.items():
        product = products.get(product_id)
        if not product or not product.active:
            raise ValueError(f"Produto inválido: {product_id}.")
        unit = quantize_money(product.sale_price)
        line_total = quantize_money(unit * qty)
        subtotal += line_total
        sale_items.append(SaleItemORM(
            product_id=product.id,
            product_name=product.name,
            quantity=qty,
            unit_price=unit,
            total_price=line_total,
            is_composite=bool(product.is_composition),
        ))

    totals = compute_totals(
        subtotal=subtotal,
        sale_type=sale_type,
        delivery_fee=delivery_fee,
        addition=addition,
        discount=discount,
    )
    addition = addition or Adjustment()
    discount = discount or Adjustment()

    sale = SaleORM(
        sale_type=sale_type,
        payment_method=payment_method,
        subtotal=totals.subtotal,
        total=totals.total,
        status=INITIAL_STATUS,
        notes=(notes or "").strip() or None,
        delivery_fee=totals.delivery_fee,
        addition_type=addition.type,
        addition_value=quantize_money(addition.value),
        addition_amount=totals.addition_amount,
        discount_type=discount.type,
        discount_value=quantize_money(discount.value),
        discount_amount=totals.discount_amount,
    )

    try:
        # 1. venda
        db.add(sale)
        db.flush()

        # 2. itens
        for si in sale_items:
            si.sale_id = sale.id
            db.add(si)
        db.flush()

        # 3. entrega
        if delivery is not None:
            db.add(DeliveryInfoORM(
                sale_id=sale.id,
                customer_name=delivery.customer_name.strip(),
                customer_phone=delivery.customer_phone,
                delivery_date=_delivery_datetime(delivery),
                cep=delivery.cep,
                street=delivery.street,
                number=delivery.number,
                complement=delivery.complement,
                neighborhood=delivery.neighborhood,
                city=delivery.city,
                state=(delivery.state or "").upper() or None,
                additional_info=delivery.additional_info,
                from_text=delivery.from_text,
                to_text=delivery.to_text,
            ))
            db.flush()
    except SQLAlchemyError as e:
        logger.exception("falha ao gravar venda; desfazendo a transação")
        db.rollback()
        raise StoreError("Ocorreu um erro ao finalizar a venda.") from e

    # itens/entrega foram gravados por sale_id; recarrega as relações
    db.expire(sale, ["items", "delivery_info"])

    logger.info(
        "venda criada id=%s tipo=%s pagamento=%s total=%s",
        sale.id, sale_type.value, payment_method.value, totals.total,
    )
    return sale


def get_sale(db: Session, sale_id: int) -> SaleORM:
    stmt = (
        select(SaleORM)
        .options(selectinload(SaleORM.items), selectinload(SaleORM.delivery_info))
        .where(SaleORM.id == sale_id)
    )
    sale = db.execute(stmt).scalars().first()
    if not sale:
        raise NotFoundError("Venda não encontrada.")
    return sale


def component_relations_for(db: Session, product_ids: Sequence[int]) -> dict[int, list]:
    """parent_product_id -> ComponentLine[] (uma consulta só)."""
    if not product_ids:
        return {}
    stmt = (
        select(ProductComponentORM)
        .options(selectinload(ProductComponentORM.component))
        .where(ProductComponentORM.parent_product_id.in_(list(product_ids)))
        .order_by(ProductComponentORM.id.asc())
    )
    grouped: dict[int, list] = {}
    for rel in db.execute(stmt).scalars().all():
        grouped.setdefault(rel.parent_product_id, []).append(rel)
    return {pid: lines_from_relations(rels) for pid, rels in grouped.items()}


def expand_items(db: Session, items: Sequence[SaleItemORM]) -> list[SaleItemDetail]:
    composite_ids = {i.product_id for i in items if i.is_composite}
    relations = component_relations_for(db, sorted(composite_ids))
    return [
        SaleItemDetail(
            item=i,
            components=expand_sale_item(i, relations.get(i.product_id, [])) if i.is_composite else [],
        )
        for i in items
    ]


def get_sale_detail(db: Session, sale_id: int) -> tuple[SaleORM, list[SaleItemDetail]]:
    sale = get_sale(db, sale_id)
    return sale, expand_items(db, sale.items)


def set_status(db: Session, *, sale_id: int, new_status: Union[OrderStatus, str]) -> SaleORM:
    """
    Troca direta para qualquer status (sem grafo de transições). O status só
    muda de fato se a escrita passar.
    """
    target = coerce_status(new_status)
    sale = db.get(SaleORM, sale_id)
    if not sale:
        raise NotFoundError("Venda não encontrada.")

    previous = sale.status
    # idempotência: se já está no status, só retorna
    if previous == target:
        return sale

    sale.status = target
    # se a escrita falhar o rollback expira o objeto e o status volta do banco
    with store_write(db, "atualizar status do pedido"):
        pass

    logger.info("venda %s: status %s -> %s", sale_id, previous.value, target.value)
    return sale


def list_sales(
    db: Session,
    *,
    page: int = 1,
    page_size: int = 20,
    customer_name: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    sale_type: Optional[SaleType] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
):
    if page < 1:
        raise ValueError("page deve ser >= 1")
    if page_size < 1 or page_size > 200:
        raise ValueError("page_size deve estar entre 1 e 200")

    q = db.query(SaleORM)

    # filtros
    if customer_name:
        q = q.join(DeliveryInfoORM, DeliveryInfoORM.sale_id == SaleORM.id).filter(
            DeliveryInfoORM.customer_name.ilike(f"%{customer_name.strip()}%")
        )

    if status is not None:
        q = q.filter(SaleORM.status == status)

    if sale_type is not None:
        q = q.filter(SaleORM.sale_type == sale_type)

    # período (date_to inclusivo)
    if date_from is not None:
        q = q.filter(SaleORM.created_at >= datetime.combine(date_from, time.min))

    if date_to is not None:
        q = q.filter(SaleORM.created_at < datetime.combine(date_to + timedelta(days=1), time.min))

    # total antes da paginação
    total = q.with_entities(func.count(SaleORM.id)).scalar() or 0

    # ordenação + paginação
    items = (
        q.options(selectinload(SaleORM.delivery_info))
         .order_by(SaleORM.created_at.desc(), SaleORM.id.desc())
         .offset((page - 1) * page_size)
         .limit(page_size)
         .all()
    )

    return items, total


def list_pending_orders(db: Session) -> list[SaleORM]:
    """Pedidos pendentes, do mais antigo para o mais novo, com itens."""
    stmt = (
        select(SaleORM)
        .options(selectinload(SaleORM.items), selectinload(SaleORM.delivery_info))
        .where(SaleORM.status == OrderStatus.PENDING)
        .order_by(SaleORM.created_at.asc(), SaleORM.id.asc())
    )
    return list(db.execute(stmt).scalars().all())


def delivery_schedule(db: Session, day: date) -> list[DeliveryInfoORM]:
    start = datetime.combine(day, time.min)
    end = start + timedelta(days=1)
    stmt = (
        select(DeliveryInfoORM)
        .options(selectinload(DeliveryInfoORM.sale))
        .where(DeliveryInfoORM.delivery_date >= start, DeliveryInfoORM.delivery_date < end)
        .order_by(DeliveryInfoORM.delivery_date.asc(), DeliveryInfoORM.id.asc())
    )
    return list(db.execute(stmt).scalars().all())
