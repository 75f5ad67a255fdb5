from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from backoffice.infra.models import DeliveryInfoORM, PaymentMethod, SaleItemORM, SaleORM, SaleType
from backoffice.services.errors import StoreError
from backoffice.services.sales_service import CartLine, DeliveryData, checkout


def _delivery(**extra):
    body = {
        "customer_name": "Maria",
        "customer_phone": "83999990000",
        "delivery_date": "2026-03-10",
        "delivery_time": "14:30",
        "street": "Rua das Flores",
        "number": "10",
        "neighborhood": "Centro",
        "city": "João Pessoa",
        "state": "pb",
        "from_text": "Ana",
        "to_text": "Maria",
    }
    body.update(extra)
    return body


def _checkout(client, **body):
    r = client.post("/sales/checkout", json=body)
    assert r.status_code == 201, r.text
    return r.json()


def test_pickup_checkout_totals_and_snapshot(client, combo):
    sale = _checkout(
        client,
        items=[
            {"product_id": combo["burger"].id, "quantity": "1"},
            {"product_id": combo["combo"].id, "quantity": "1"},
            {"product_id": combo["burger"].id, "quantity": "1"},
        ],
        payment_method="pix",
        addition={"type": "percentage", "value": "10"},
        discount={"type": "fixed", "value": "5"},
        delivery_fee="7.00",
    )
    # burger 2 x 18,00 + combo 30,00
    assert Decimal(sale["subtotal"]) == Decimal("66.00")
    assert Decimal(sale["addition_amount"]) == Decimal("6.60")
    assert Decimal(sale["discount_amount"]) == Decimal("5.00")
    # retirada não paga taxa de entrega
    assert Decimal(sale["delivery_fee"]) == Decimal("0.00")
    assert Decimal(sale["total"]) == Decimal("67.60")
    assert sale["status"] == "PENDING"
    assert sale["status_label"] == "Pendente"
    assert sale["delivery_info"] is None

    items = {i["product_name"]: i for i in sale["items"]}
    assert Decimal(items["Burger"]["quantity"]) == Decimal("2")
    assert Decimal(items["Burger"]["total_price"]) == Decimal("36.00")
    assert items["Combo"]["is_composite"] is True
    assert [(c["product_name"], Decimal(c["quantity"])) for c in items["Combo"]["components"]] == [
        ("Burger", Decimal("1")),
        ("Fries", Decimal("2")),
    ]


def test_delivery_checkout_adds_fee_and_delivery_info(client, combo):
    sale = _checkout(
        client,
        items=[{"product_id": combo["combo"].id, "quantity": "3"}],
        sale_type="delivery",
        payment_method="credit_card",
        delivery_fee="7.00",
        delivery=_delivery(),
    )
    assert Decimal(sale["subtotal"]) == Decimal("90.00")
    assert Decimal(sale["total"]) == Decimal("97.00")
    info = sale["delivery_info"]
    assert info["customer_name"] == "Maria"
    assert info["state"] == "PB"
    assert info["delivery_date"].startswith("2026-03-10T14:30")

    combo_item = sale["items"][0]
    assert [(c["product_name"], Decimal(c["quantity"]), Decimal(c["total_price"])) for c in combo_item["components"]] == [
        ("Burger", Decimal("3"), Decimal("30.00")),
        ("Fries", Decimal("6"), Decimal("30.00")),
    ]


def test_snapshot_price_survives_product_change(client, combo):
    sale = _checkout(client, items=[{"product_id": combo["fries"].id, "quantity": "1"}], payment_method="cash")
    r = client.put(f"/products/{combo['fries'].id}", json={"sale_price": "99.00"})
    assert r.status_code == 200, r.text

    detail = client.get(f"/sales/{sale['id']}").json()
    assert Decimal(detail["items"][0]["unit_price"]) == Decimal("8.00")


@pytest.mark.parametrize("body, message", [
    ({"items": [], "payment_method": "pix"}, None),
    ({"items": [{"product_id": 1, "quantity": "1"}], "payment_method": "pix", "sale_type": "delivery"}, "dados de entrega"),
    ({"items": [{"product_id": 1, "quantity": "1"}], "payment_method": "pix", "delivery": _delivery()}, "retirada"),
    ({"items": [{"product_id": 999, "quantity": "1"}], "payment_method": "pix"}, "Produto inválido"),
    ({"items": [{"product_id": 1, "quantity": "1"}], "payment_method": "pix",
      "discount": {"type": "fixed", "value": "500"}}, "Desconto"),
])
def test_checkout_validation(client, combo, body, message):
    r = client.post("/sales/checkout", json=body)
    assert r.status_code in (400, 422), r.text
    if message:
        assert message in r.json()["detail"]


def test_checkout_is_atomic(db_session, combo, monkeypatch):
    real_flush = db_session.flush
    calls = {"n": 0}

    def flaky_flush(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 3:  # falha gravando a entrega
            raise SQLAlchemyError("store down")
        return real_flush(*args, **kwargs)

    monkeypatch.setattr(db_session, "flush", flaky_flush)

    with pytest.raises(StoreError):
        checkout(
            db_session,
            items=[CartLine(combo["burger"].id, Decimal("1"))],
            sale_type=SaleType.DELIVERY,
            payment_method=PaymentMethod.CASH,
            delivery=DeliveryData(customer_name="Maria"),
        )

    monkeypatch.undo()
    # nada de venda órfã
    assert db_session.scalar(select(func.count(SaleORM.id))) == 0
    assert db_session.scalar(select(func.count(SaleItemORM.id))) == 0
    assert db_session.scalar(select(func.count(DeliveryInfoORM.id))) == 0


def test_set_status_accepts_code_or_label(client, combo):
    sale = _checkout(client, items=[{"product_id": combo["burger"].id, "quantity": "1"}], payment_method="pix")

    r = client.patch(f"/sales/{sale['id']}/status", json={"status": "Pago"})
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "PAID"

    # qualquer status pode ir para qualquer outro
    r = client.patch(f"/sales/{sale['id']}/status", json={"status": "PENDING"})
    assert r.json()["status"] == "PENDING"

    r = client.patch(f"/sales/{sale['id']}/status", json={"status": "nao existe"})
    assert r.status_code == 400

    r = client.patch("/sales/999/status", json={"status": "PAID"})
    assert r.status_code == 404


def test_status_write_failure_keeps_status(client, db_session, combo, monkeypatch):
    sale = _checkout(client, items=[{"product_id": combo["burger"].id, "quantity": "1"}], payment_method="pix")

    def broken_flush(*args, **kwargs):
        raise SQLAlchemyError("store down")

    monkeypatch.setattr(db_session, "flush", broken_flush)
    r = client.patch(f"/sales/{sale['id']}/status", json={"status": "PAID"})
    assert r.status_code == 502
    monkeypatch.undo()

    assert client.get(f"/sales/{sale['id']}").json()["status"] == "PENDING"


def test_list_filters_and_pagination(client, combo):
    for _ in range(3):
        _checkout(client, items=[{"product_id": combo["burger"].id, "quantity": "1"}], payment_method="pix")
    delivery = _checkout(
        client,
        items=[{"product_id": combo["fries"].id, "quantity": "1"}],
        sale_type="delivery",
        payment_method="cash",
        delivery=_delivery(customer_name="Joana Souza"),
    )
    client.patch(f"/sales/{delivery['id']}/status", json={"status": "PAID"})

    r = client.get("/sales", params={"page_size": 2})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["total"] == 4
    assert len(body["items"]) == 2

    r = client.get("/sales", params={"customer_name": "joana"})
    assert [s["id"] for s in r.json()["items"]] == [delivery["id"]]

    r = client.get("/sales", params={"status": "Pago"})
    assert r.json()["total"] == 1

    r = client.get("/sales", params={"sale_type": "pickup"})
    assert r.json()["total"] == 3

    assert client.get("/sales", params={"status": "???"}).status_code == 400


def test_pending_orders_oldest_first(client, combo):
    first = _checkout(client, items=[{"product_id": combo["burger"].id, "quantity": "1"}], payment_method="pix")
    second = _checkout(client, items=[{"product_id": combo["fries"].id, "quantity": "2"}], payment_method="pix")
    client.patch(f"/sales/{first['id']}/status", json={"status": "CANCELED"})
    third = _checkout(client, items=[{"product_id": combo["combo"].id, "quantity": "1"}], payment_method="pix")

    r = client.get("/sales/pending")
    assert r.status_code == 200
    assert [s["id"] for s in r.json()] == [second["id"], third["id"]]
    assert r.json()[0]["items"][0]["product_name"] == "Fries"


def test_delivery_schedule_for_day(client, combo):
    late = _checkout(
        client,
        items=[{"product_id": combo["burger"].id, "quantity": "1"}],
        sale_type="delivery",
        payment_method="pix",
        delivery=_delivery(customer_name="Tarde", delivery_time="18:00"),
    )
    early = _checkout(
        client,
        items=[{"product_id": combo["burger"].id, "quantity": "1"}],
        sale_type="delivery",
        payment_method="pix",
        delivery=_delivery(customer_name="Manhã", delivery_time="09:00"),
    )
    _checkout(
        client,
        items=[{"product_id": combo["burger"].id, "quantity": "1"}],
        sale_type="delivery",
        payment_method="pix",
        delivery=_delivery(customer_name="Outro dia", delivery_date="2026-03-11"),
    )

    r = client.get("/sales/schedule", params={"day": "2026-03-10"})
    assert r.status_code == 200, r.text
    assert [e["sale_id"] for e in r.json()] == [early["id"], late["id"]]
    assert r.json()[0]["status_label"] == "Pendente"


def test_receipt_html(client, combo):
    sale = _checkout(
        client,
        items=[{"product_id": combo["combo"].id, "quantity": "1"}],
        sale_type="delivery",
        payment_method="pix",
        delivery_fee="5.00",
        discount={"type": "percentage", "value": "10"},
        delivery=_delivery(),
    )
    client.patch(f"/sales/{sale['id']}/status", json={"status": "PAID"})

    r = client.get(f"/sales/{sale['id']}/receipt")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/html")
    html = r.text
    assert f"Pedido #{sale['id']}" in html
    assert "Combo" in html
    assert "2x Fries" in html
    assert "Desconto: -10%" in html
    assert "Taxa de entrega: R$ 5,00" in html
    assert "Total: R$ 32,00" in html
    assert "Cliente: Maria" in html
    assert "<span class='step reached'>Pago</span>" in html
    assert "<span class='step'>Embalado</span>" in html

    assert client.get("/sales/999/receipt").status_code == 404
