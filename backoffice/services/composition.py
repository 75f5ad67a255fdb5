"""
Produto composto: lista de (componente, quantidade) e os valores derivados dela.

Tudo aqui é puro: as funções recebem a lista atual e devolvem uma nova, sem
tocar no banco. O custo é sempre recalculado da lista inteira.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Iterable, Optional, Protocol, Sequence

from backoffice.services.money import Number, ZERO, quantize_money, to_decimal

QTY = Decimal("0.001")

DUPLICATE_MESSAGE = "Este produto já foi adicionado à composição."
NESTED_MESSAGE = "Produtos compostos não podem ser componentes de outra composição."
SELF_MESSAGE = "Um produto não pode ser componente de si mesmo."
INVALID_QTY_MESSAGE = "Quantidade deve ser um número maior que zero."


@dataclass(frozen=True)
class ProductRef:
    id: int
    name: str
    cost_price: Decimal
    sale_price: Decimal
    is_composition: bool = False

    @classmethod
    def from_orm(cls, product) -> "ProductRef":
        return cls(
            id=product.id,
            name=product.name,
            cost_price=to_decimal(product.cost_price or 0),
            sale_price=to_decimal(product.sale_price or 0),
            is_composition=bool(product.is_composition),
        )


@dataclass(frozen=True)
class ComponentLine:
    product: ProductRef
    quantity: Decimal

    @property
    def cost_total(self) -> Decimal:
        return quantize_money(self.product.cost_price * self.quantity)

    @property
    def sale_total(self) -> Decimal:
        return quantize_money(self.product.sale_price * self.quantity)


@dataclass(frozen=True)
class ComponentChange:
    """Resultado de uma edição: ok=False significa recusada, lista intacta."""
    ok: bool
    components: tuple[ComponentLine, ...]
    message: Optional[str] = None

    @property
    def cost(self) -> Decimal:
        return compute_cost(self.components)


@dataclass(frozen=True)
class ExpandedComponent:
    product_id: int
    product_name: str
    quantity: Decimal
    unit_price: Decimal
    total_price: Decimal


class HasQuantity(Protocol):
    quantity: Decimal


def _valid_quantity(quantity: Number) -> Optional[Decimal]:
    try:
        q = to_decimal(quantity)
    except ValueError:
        return None
    if q <= 0:
        return None
    return q.quantize(QTY)


def add_component(
    components: Sequence[ComponentLine],
    candidate: ProductRef,
    quantity: Number,
    *,
    parent_id: Optional[int] = None,
) -> ComponentChange:
    current = tuple(components)

    if any(c.product.id == candidate.id for c in current):
        return ComponentChange(False, current, DUPLICATE_MESSAGE)
    if candidate.is_composition:
        return ComponentChange(False, current, NESTED_MESSAGE)
    if parent_id is not None and candidate.id == parent_id:
        return ComponentChange(False, current, SELF_MESSAGE)

    q = _valid_quantity(quantity)
    if q is None:
        return ComponentChange(False, current, INVALID_QTY_MESSAGE)

    return ComponentChange(True, current + (ComponentLine(candidate, q),))


def remove_component(components: Sequence[ComponentLine], product_id: int) -> ComponentChange:
    # ausente não é erro
    kept = tuple(c for c in components if c.product.id != product_id)
    return ComponentChange(True, kept)


def set_component_quantity(
    components: Sequence[ComponentLine],
    product_id: int,
    quantity: Number,
) -> ComponentChange:
    current = tuple(components)
    q = _valid_quantity(quantity)
    if q is None:
        return ComponentChange(False, current, INVALID_QTY_MESSAGE)
    return ComponentChange(
        True,
        tuple(replace(c, quantity=q) if c.product.id == product_id else c for c in current),
    )


def compute_cost(components: Iterable[ComponentLine]) -> Decimal:
    total = sum((c.product.cost_price * c.quantity for c in components), ZERO)
    return quantize_money(total)


def compute_sale_total(components: Iterable[ComponentLine]) -> Decimal:
    """Soma dos preços de venda dos componentes: preço sugerido do composto."""
    total = sum((c.product.sale_price * c.quantity for c in components), ZERO)
    return quantize_money(total)


def channel_base_price(components: Iterable[ComponentLine]) -> Decimal:
    # nos canais online o composto parte de metade da soma dos preços de venda
    return quantize_money(compute_sale_total(components) / 2)


def total_units(components: Iterable[ComponentLine]) -> Decimal:
    return sum((c.quantity for c in components), Decimal("0"))


def expand_sale_item(
    item: HasQuantity,
    relations: Iterable[ComponentLine],
    *,
    use_sale_price: bool = False,
) -> list[ExpandedComponent]:
    """
    Abre um item composto vendido em sub-linhas: quantidade do componente
    vezes a quantidade vendida, ao preço de custo do componente (ou de venda,
    no orçamento impresso para o cliente).
    """
    sold = to_decimal(item.quantity)
    out: list[ExpandedComponent] = []
    for rel in relations:
        qty = (rel.quantity * sold).quantize(QTY)
        unit = quantize_money(rel.product.sale_price if use_sale_price else rel.product.cost_price)
        out.append(
            ExpandedComponent(
                product_id=rel.product.id,
                product_name=rel.product.name,
                quantity=qty,
                unit_price=unit,
                total_price=quantize_money(qty * unit),
            )
        )
    return out


def lines_from_relations(relations) -> list[ComponentLine]:
    """ProductComponentORM[] -> ComponentLine[] (componente já carregado)."""
    return [
        ComponentLine(ProductRef.from_orm(r.component), to_decimal(r.quantity).quantize(QTY))
        for r in relations
    ]
