# backoffice/services/preparation_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from backoffice.infra.models import OrderStatus, SaleType
from backoffice.services.errors import store_write
from backoffice.services.money import to_decimal
from backoffice.services.order_status import label_for, status_after_preparation
from backoffice.services.sales_service import get_sale, expand_items

logger = logging.getLogger(__name__)

INCOMPLETE_MESSAGE = "A separação do pedido ainda não foi concluída."

_ZERO_QTY = Decimal("0.000")


@dataclass
class PickComponent:
    product_id: int
    product_name: str
    quantity: Decimal
    picked: Decimal = _ZERO_QTY

    @property
    def fully_picked(self) -> bool:
        return self.picked == self.quantity


@dataclass
class PickLine:
    item_id: int
    product_id: int
    product_name: str
    quantity: Decimal
    is_composite: bool = False
    picked: Decimal = _ZERO_QTY
    components: list[PickComponent] = field(default_factory=list)

    @property
    def fully_picked(self) -> bool:
        if self.picked != self.quantity:
            return False
        return all(c.fully_picked for c in self.components)


@dataclass
class Picklist:
    sale_id: int
    sale_type: SaleType
    status: OrderStatus
    lines: list[PickLine] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return all(line.fully_picked for line in self.lines)

    def pending_item_ids(self) -> list[int]:
        return [line.item_id for line in self.lines if not line.fully_picked]


@dataclass(frozen=True)
class PickInput:
    item_id: int
    quantity: Decimal
    component_id: Optional[int] = None


@dataclass(frozen=True)
class PreparationOutcome:
    ok: bool
    status: OrderStatus
    message: str
    offer_receipt: bool = False
    pending_item_ids: tuple[int, ...] = ()


def _clamp(value, upper: Decimal) -> Decimal:
    q = to_decimal(value)
    if q < 0:
        q = Decimal("0")
    if q > upper:
        q = upper
    return q.quantize(Decimal("0.001"))


def build_picklist(db: Session, sale_id: int) -> Picklist:
    """Itens do pedido com os componentes abertos, nada separado ainda."""
    sale = get_sale(db, sale_id)
    lines = []
    for detail in expand_items(db, sale.items):
        item = detail.item
        lines.append(PickLine(
            item_id=item.id,
            product_id=item.product_id,
            product_name=item.product_name,
            quantity=to_decimal(item.quantity).quantize(Decimal("0.001")),
            is_composite=bool(item.is_composite),
            components=[
                PickComponent(c.product_id, c.product_name, c.quantity)
                for c in detail.components
            ],
        ))
    return Picklist(sale_id=sale.id, sale_type=sale.sale_type, status=sale.status, lines=lines)


def set_picked_quantity(
    picklist: Picklist,
    item_id: int,
    quantity,
    *,
    component_id: Optional[int] = None,
) -> PickLine:
    """
    Marca quanto foi separado (limitado a [0, quantidade]).

    Num item composto, separar todos os componentes separa o item; marcar o
    item inteiro (ou zerar) vale para todos os componentes.
    """
    line = next((ln for ln in picklist.lines if ln.item_id == item_id), None)
    if line is None:
        raise ValueError(f"Item {item_id} não pertence ao pedido.")

    if component_id is None:
        line.picked = _clamp(quantity, line.quantity)
        if line.picked == line.quantity:
            for c in line.components:
                c.picked = c.quantity
        elif line.picked == 0:
            for c in line.components:
                c.picked = _ZERO_QTY
        return line

    comp = next((c for c in line.components if c.product_id == component_id), None)
    if comp is None:
        raise ValueError(f"Componente {component_id} não pertence ao item {item_id}.")
    comp.picked = _clamp(quantity, comp.quantity)

    if all(c.fully_picked for c in line.components):
        line.picked = line.quantity
    elif line.picked == line.quantity:
        # um componente foi desmarcado
        line.picked = _ZERO_QTY
    return line


def complete_preparation(db: Session, sale_id: int, picks: Iterable[PickInput]) -> PreparationOutcome:
    picklist = build_picklist(db, sale_id)
    for p in picks:
        set_picked_quantity(picklist, p.item_id, p.quantity, component_id=p.component_id)

    if not picklist.complete:
        pending = tuple(picklist.pending_item_ids())
        logger.info("preparação recusada venda=%s itens pendentes=%s", sale_id, pending)
        return PreparationOutcome(False, picklist.status, INCOMPLETE_MESSAGE, pending_item_ids=pending)

    sale = get_sale(db, sale_id)
    previous = sale.status
    target = status_after_preparation(sale.sale_type)
    sale.status = target
    with store_write(db, "concluir a preparação do pedido"):
        pass

    logger.info("preparação concluída venda=%s status %s -> %s", sale_id, previous.value, target.value)
    return PreparationOutcome(
        True,
        target,
        f"Pedido preparado: {label_for(target)}.",
        offer_receipt=True,
    )
