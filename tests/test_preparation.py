from __future__ import annotations

from decimal import Decimal

import pytest

from backoffice.infra.models import OrderStatus, PaymentMethod, SaleType
from backoffice.services.preparation_service import (
    INCOMPLETE_MESSAGE,
    PickComponent,
    PickLine,
    Picklist,
    set_picked_quantity,
)


def _picklist():
    return Picklist(
        sale_id=1,
        sale_type=SaleType.PICKUP,
        status=OrderStatus.PENDING,
        lines=[
            PickLine(10, 1, "Burger", Decimal("2")),
            PickLine(11, 3, "Combo", Decimal("1"), is_composite=True, components=[
                PickComponent(1, "Burger", Decimal("1")),
                PickComponent(2, "Fries", Decimal("2")),
            ]),
        ],
    )


def test_picked_quantity_is_clamped():
    pl = _picklist()
    assert set_picked_quantity(pl, 10, 5).picked == Decimal("2")
    assert set_picked_quantity(pl, 10, -1).picked == Decimal("0")


def test_composite_item_picked_when_all_components_are():
    pl = _picklist()
    line = set_picked_quantity(pl, 11, 1, component_id=1)
    assert not line.fully_picked
    line = set_picked_quantity(pl, 11, 2, component_id=2)
    assert line.fully_picked
    assert line.picked == Decimal("1")

    # desmarca um componente: item volta a pendente
    line = set_picked_quantity(pl, 11, 0, component_id=2)
    assert not line.fully_picked


def test_checking_composite_item_checks_components():
    pl = _picklist()
    line = set_picked_quantity(pl, 11, 1)
    assert all(c.fully_picked for c in line.components)
    line = set_picked_quantity(pl, 11, 0)
    assert not any(c.fully_picked for c in line.components)


def test_unknown_item_or_component():
    pl = _picklist()
    with pytest.raises(ValueError):
        set_picked_quantity(pl, 99, 1)
    with pytest.raises(ValueError):
        set_picked_quantity(pl, 11, 1, component_id=99)


def _sale(client, combo, sale_type="pickup"):
    body = {
        "items": [
            {"product_id": combo["burger"].id, "quantity": "2"},
            {"product_id": combo["combo"].id, "quantity": "1"},
        ],
        "payment_method": PaymentMethod.PIX.value,
        "sale_type": sale_type,
    }
    if sale_type == "delivery":
        body["delivery"] = {"customer_name": "Maria"}
    r = client.post("/sales/checkout", json=body)
    assert r.status_code == 201, r.text
    return r.json()


def _lines(client, sale_id):
    r = client.get(f"/preparation/{sale_id}")
    assert r.status_code == 200, r.text
    return {line["product_name"]: line for line in r.json()["lines"]}


def test_picklist_starts_unpicked(client, combo):
    sale = _sale(client, combo)
    r = client.get(f"/preparation/{sale['id']}")
    body = r.json()
    assert body["complete"] is False
    lines = {line["product_name"]: line for line in body["lines"]}
    assert Decimal(lines["Burger"]["picked"]) == 0
    assert [(c["product_name"], Decimal(c["quantity"])) for c in lines["Combo"]["components"]] == [
        ("Burger", Decimal("1")),
        ("Fries", Decimal("2")),
    ]

    assert client.get("/preparation/999").status_code == 404


def test_incomplete_preparation_is_refused(client, combo):
    sale = _sale(client, combo)
    lines = _lines(client, sale["id"])

    r = client.post(f"/preparation/{sale['id']}/complete", json={"picks": [
        {"item_id": lines["Burger"]["item_id"], "quantity": "2"},
        {"item_id": lines["Combo"]["item_id"], "component_id": combo["burger"].id, "quantity": "1"},
    ]})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["ok"] is False
    assert body["message"] == INCOMPLETE_MESSAGE
    assert body["offer_receipt"] is False
    assert body["pending_item_ids"] == [lines["Combo"]["item_id"]]

    assert client.get(f"/sales/{sale['id']}").json()["status"] == "PENDING"


@pytest.mark.parametrize("sale_type, expected", [
    ("pickup", "AWAITING_PICKUP"),
    ("delivery", "PACKED"),
])
def test_complete_preparation_by_sale_type(client, combo, sale_type, expected):
    sale = _sale(client, combo, sale_type)
    lines = _lines(client, sale["id"])

    r = client.post(f"/preparation/{sale['id']}/complete", json={"picks": [
        {"item_id": lines["Burger"]["item_id"], "quantity": "2"},
        {"item_id": lines["Combo"]["item_id"], "component_id": combo["burger"].id, "quantity": "1"},
        {"item_id": lines["Combo"]["item_id"], "component_id": combo["fries"].id, "quantity": "2"},
    ]})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["ok"] is True
    assert body["status"] == expected
    assert body["offer_receipt"] is True

    assert client.get(f"/sales/{sale['id']}").json()["status"] == expected
