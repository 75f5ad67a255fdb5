# backoffice/services/quote_service.py
"""
Simulação de preço / orçamento.

Nada aqui grava no banco: o carrinho simulado vive na memória e o orçamento
é só um documento com validade.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from dateutil.relativedelta import relativedelta
from sqlalchemy import select
from sqlalchemy.orm import Session

from backoffice.config import QUOTE_VALIDITY_DAYS
from backoffice.infra.models import ProductORM
from backoffice.services.composition import ExpandedComponent, ProductRef, expand_sale_item
from backoffice.services.money import ZERO, quantize_money, to_decimal
from backoffice.services.sales_service import CartLine, component_relations_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuoteLine:
    product: ProductRef
    quantity: Decimal

    @property
    def unit_price(self) -> Decimal:
        return quantize_money(self.product.sale_price)

    @property
    def total_price(self) -> Decimal:
        return quantize_money(self.product.sale_price * self.quantity)


def _positive(quantity) -> Decimal:
    q = to_decimal(quantity)
    if q <= 0:
        raise ValueError("Quantidade deve ser maior que zero.")
    return q.quantize(Decimal("0.001"))


def add_to_cart(cart: Sequence[QuoteLine], product: ProductRef, quantity) -> list[QuoteLine]:
    # produto repetido soma na linha existente
    q = _positive(quantity)
    out = list(cart)
    for i, line in enumerate(out):
        if line.product.id == product.id:
            out[i] = replace(line, quantity=line.quantity + q)
            return out
    out.append(QuoteLine(product, q))
    return out


def remove_from_cart(cart: Sequence[QuoteLine], product_id: int) -> list[QuoteLine]:
    return [line for line in cart if line.product.id != product_id]


def set_cart_quantity(cart: Sequence[QuoteLine], product_id: int, quantity) -> list[QuoteLine]:
    q = _positive(quantity)
    return [replace(line, quantity=q) if line.product.id == product_id else line for line in cart]


def quote_total(cart: Sequence[QuoteLine]) -> Decimal:
    return quantize_money(sum((line.total_price for line in cart), ZERO))


@dataclass
class QuoteEntry:
    line: QuoteLine
    components: list[ExpandedComponent] = field(default_factory=list)


@dataclass
class Quote:
    entries: list[QuoteEntry]
    total: Decimal
    issued_at: datetime
    valid_until: datetime
    customer_name: Optional[str] = None
    notes: Optional[str] = None


def build_cart(db: Session, items: Sequence[CartLine]) -> list[QuoteLine]:
    ids = sorted({i.product_id for i in items})
    products = {
        p.id: p
        for p in db.execute(select(ProductORM).where(ProductORM.id.in_(ids))).scalars().all()
    }
    cart: list[QuoteLine] = []
    for i in items:
        product = products.get(i.product_id)
        if not product or not product.active:
            raise ValueError(f"Produto inválido: {i.product_id}.")
        cart = add_to_cart(cart, ProductRef.from_orm(product), i.quantity)
    return cart


def build_quote(
    db: Session,
    items: Sequence[CartLine],
    *,
    customer_name: Optional[str] = None,
    notes: Optional[str] = None,
) -> Quote:
    """
    Monta o orçamento: linhas ao preço de venda, compostos abertos em
    componentes (também a preço de venda) e validade a partir de agora.
    """
    if not items:
        raise ValueError("Adicione produtos para gerar o orçamento.")

    cart = build_cart(db, items)
    relations = component_relations_for(db, [ln.product.id for ln in cart if ln.product.is_composition])

    entries = [
        QuoteEntry(
            line=line,
            components=(
                expand_sale_item(line, relations.get(line.product.id, []), use_sale_price=True)
                if line.product.is_composition else []
            ),
        )
        for line in cart
    ]

    issued = datetime.now()
    quote = Quote(
        entries=entries,
        total=quote_total(cart),
        issued_at=issued,
        valid_until=issued + relativedelta(days=QUOTE_VALIDITY_DAYS),
        customer_name=(customer_name or "").strip() or None,
        notes=(notes or "").strip() or None,
    )
    logger.info("orçamento gerado itens=%s total=%s", len(entries), quote.total)
    return quote
