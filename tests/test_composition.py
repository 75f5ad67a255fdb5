from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from backoffice.services.composition import (
    DUPLICATE_MESSAGE,
    INVALID_QTY_MESSAGE,
    NESTED_MESSAGE,
    SELF_MESSAGE,
    ComponentLine,
    ProductRef,
    add_component,
    channel_base_price,
    compute_cost,
    compute_sale_total,
    expand_sale_item,
    remove_component,
    set_component_quantity,
    total_units,
)

BURGER = ProductRef(1, "Burger", Decimal("10.00"), Decimal("18.00"))
FRIES = ProductRef(2, "Fries", Decimal("5.00"), Decimal("8.00"))
SODA = ProductRef(3, "Soda", Decimal("2.50"), Decimal("6.00"))
COMBO = ProductRef(9, "Combo", Decimal("20.00"), Decimal("30.00"), is_composition=True)


@dataclass
class SoldItem:
    quantity: Decimal


def _combo_lines():
    change = add_component([], BURGER, 1)
    change = add_component(change.components, FRIES, 2)
    assert change.ok
    return change.components


def test_cost_of_empty_list_is_zero():
    assert compute_cost([]) == Decimal("0.00")
    assert compute_sale_total([]) == Decimal("0.00")


def test_combo_cost():
    lines = _combo_lines()
    assert compute_cost(lines) == Decimal("20.00")
    assert compute_sale_total(lines) == Decimal("34.00")
    assert channel_base_price(lines) == Decimal("17.00")
    assert total_units(lines) == Decimal("3")


def test_duplicate_add_is_refused_and_list_unchanged():
    lines = _combo_lines()
    change = add_component(lines, BURGER, 5)
    assert not change.ok
    assert change.message == DUPLICATE_MESSAGE
    assert change.components == tuple(lines)
    assert change.cost == Decimal("20.00")


def test_nested_and_self_reference_are_refused():
    change = add_component([], COMBO, 1)
    assert not change.ok and change.message == NESTED_MESSAGE

    change = add_component([], BURGER, 1, parent_id=BURGER.id)
    assert not change.ok and change.message == SELF_MESSAGE


def test_invalid_quantities_are_refused():
    for qty in (0, -1, "abc", float("nan"), float("inf"), None):
        change = add_component([], BURGER, qty)
        assert not change.ok
        assert change.message == INVALID_QTY_MESSAGE
        assert change.components == ()


def test_fractional_quantity_allowed():
    change = add_component([], SODA, "0.5")
    assert change.ok
    assert change.cost == Decimal("1.25")


def test_remove_absent_is_noop():
    lines = _combo_lines()
    change = remove_component(lines, 999)
    assert change.ok
    assert change.components == tuple(lines)


def test_remove_then_add_uses_new_quantity():
    lines = _combo_lines()
    lines = remove_component(lines, FRIES.id).components
    lines = add_component(lines, FRIES, 3).components
    assert compute_cost(lines) == Decimal("10.00") + Decimal("15.00")


def test_set_quantity_recomputes_cost():
    lines = _combo_lines()
    change = set_component_quantity(lines, BURGER.id, 2)
    assert change.ok
    assert change.cost == Decimal("30.00")

    refused = set_component_quantity(change.components, BURGER.id, -2)
    assert not refused.ok
    assert refused.components == change.components


def test_expand_three_combos():
    expanded = expand_sale_item(SoldItem(Decimal("3")), _combo_lines())
    assert [(e.product_name, e.quantity, e.total_price) for e in expanded] == [
        ("Burger", Decimal("3"), Decimal("30.00")),
        ("Fries", Decimal("6"), Decimal("30.00")),
    ]
    assert expanded[0].unit_price == Decimal("10.00")


def test_expand_with_sale_price_for_quotes():
    expanded = expand_sale_item(SoldItem(Decimal("2")), _combo_lines(), use_sale_price=True)
    assert [e.total_price for e in expanded] == [Decimal("36.00"), Decimal("32.00")]


def test_component_line_totals():
    line = ComponentLine(FRIES, Decimal("2"))
    assert line.cost_total == Decimal("10.00")
    assert line.sale_total == Decimal("16.00")
