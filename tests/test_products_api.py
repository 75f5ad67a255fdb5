from __future__ import annotations

from decimal import Decimal


def _create(client, **body):
    r = client.post("/products", json=body)
    assert r.status_code == 201, r.text
    return r.json()


def test_requires_token(client):
    r = client.get("/products", headers={"Authorization": ""})
    assert r.status_code == 401


def test_create_simple_product_with_margin(client):
    p = _create(client, name="Caneca", barcode="111", cost_price="10.00", default_profit_margin="50")
    assert Decimal(p["sale_price"]) == Decimal("15.00")
    assert Decimal(p["default_profit_margin"]) == Decimal("50.00")
    assert p["is_composition"] is False
    assert p["components"] == []


def test_margin_is_null_without_cost(client):
    p = _create(client, name="Brinde", sale_price="5.00")
    assert p["default_profit_margin"] is None


def test_duplicate_barcode_conflicts(client):
    _create(client, name="A", barcode="222")
    r = client.post("/products", json={"name": "B", "barcode": "222"})
    assert r.status_code == 409


def test_create_composite_end_to_end(client):
    burger = _create(client, name="Burger", cost_price="10.00", sale_price="18.00")
    fries = _create(client, name="Fries", cost_price="5.00", sale_price="8.00")

    combo = _create(
        client,
        name="Combo",
        is_composition=True,
        components=[
            {"product_id": burger["id"], "quantity": "1"},
            {"product_id": fries["id"], "quantity": "2"},
        ],
        channels={"shopee": {"margin": "10"}},
    )
    assert combo["is_composition"] is True
    assert Decimal(combo["cost_price"]) == Decimal("20.00")
    # sem preço informado: soma dos preços de venda dos componentes
    assert Decimal(combo["sale_price"]) == Decimal("34.00")
    # canal parte de metade da soma dos preços de venda (17,00) + 10%
    assert Decimal(combo["sale_price_shopee"]) == Decimal("18.70")
    assert [c["component"]["name"] for c in combo["components"]] == ["Burger", "Fries"]


def test_composite_without_components_costs_zero(client):
    p = _create(client, name="Kit vazio", is_composition=True)
    assert Decimal(p["cost_price"]) == Decimal("0.00")
    assert Decimal(p["sale_price"]) == Decimal("0.00")


def test_duplicate_component_is_rejected(client):
    burger = _create(client, name="Burger", cost_price="10.00", sale_price="18.00")
    r = client.post("/products", json={
        "name": "Combo",
        "is_composition": True,
        "components": [
            {"product_id": burger["id"], "quantity": "1"},
            {"product_id": burger["id"], "quantity": "2"},
        ],
    })
    assert r.status_code == 400
    assert "já foi adicionado" in r.json()["detail"]


def test_nested_composition_is_rejected(client):
    burger = _create(client, name="Burger", cost_price="10.00", sale_price="18.00")
    combo = _create(client, name="Combo", is_composition=True,
                    components=[{"product_id": burger["id"], "quantity": "1"}])
    r = client.post("/products", json={
        "name": "Mega",
        "is_composition": True,
        "components": [{"product_id": combo["id"], "quantity": "1"}],
    })
    assert r.status_code == 400


def test_component_cannot_become_composite(client, combo):
    soda = _create(client, name="Soda", cost_price="2.00", sale_price="5.00")
    r = client.put(f"/products/{combo['burger'].id}", json={
        "is_composition": True,
        "components": [{"product_id": soda["id"], "quantity": "1"}],
    })
    assert r.status_code == 400
    assert "não podem ser componentes" in r.json()["detail"]

    burger = client.get(f"/products/{combo['burger'].id}").json()
    assert burger["is_composition"] is False
    assert burger["components"] == []


def test_component_cost_change_updates_composite_cost(client, combo):
    r = client.put(f"/products/{combo['fries'].id}", json={"cost_price": "6.00"})
    assert r.status_code == 200, r.text

    body = client.get(f"/products/{combo['combo'].id}").json()
    # 1 x 10,00 + 2 x 6,00
    assert Decimal(body["cost_price"]) == Decimal("22.00")
    assert Decimal(body["sale_price"]) == Decimal("30.00")

def test_update_switches_simple_to_composite_and_back(client):
    burger = _create(client, name="Burger", cost_price="10.00", sale_price="18.00")
    fries = _create(client, name="Fries", cost_price="5.00", sale_price="8.00")
    kit = _create(client, name="Kit", cost_price="1.00", sale_price="2.00")

    r = client.put(f"/products/{kit['id']}", json={
        "is_composition": True,
        "components": [
            {"product_id": burger["id"], "quantity": "1"},
            {"product_id": fries["id"], "quantity": "1"},
        ],
    })
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["is_composition"] is True
    assert Decimal(body["cost_price"]) == Decimal("15.00")
    assert len(body["components"]) == 2

    # composição igual: preço de venda mantido
    r = client.put(f"/products/{kit['id']}", json={"name": "Kit Lanche"})
    assert r.status_code == 200, r.text
    assert r.json()["name"] == "Kit Lanche"
    assert Decimal(r.json()["sale_price"]) == Decimal("26.00")

    # composto não pode conter a si mesmo
    r = client.put(f"/products/{kit['id']}", json={
        "components": [{"product_id": kit["id"], "quantity": "1"}],
    })
    assert r.status_code == 400

    r = client.put(f"/products/{kit['id']}", json={"is_composition": False, "cost_price": "3.00"})
    assert r.status_code == 200, r.text
    assert r.json()["components"] == []
    assert Decimal(r.json()["cost_price"]) == Decimal("3.00")


def test_deactivate_is_soft_delete(client):
    p = _create(client, name="Velho", sale_price="1.00")
    r = client.delete(f"/products/{p['id']}")
    assert r.status_code == 200
    assert r.json()["active"] is False

    r = client.get(f"/products/{p['id']}")
    assert r.status_code == 200
    assert [x["id"] for x in client.get("/products").json()] == []
    assert len(client.get("/products", params={"active": False}).json()) == 1


def test_get_unknown_product_is_404(client):
    assert client.get("/products/999").status_code == 404


def test_component_candidates_exclude_composites_and_self(client, combo):
    r = client.get("/products/component-candidates", params={"q": "r"})
    assert r.status_code == 200
    names = sorted(p["name"] for p in r.json())
    assert names == ["Burger", "Fries"]

    r = client.get(
        "/products/component-candidates",
        params={"q": "Burger", "exclude_product_id": combo["burger"].id},
    )
    assert r.json() == []


def test_composition_preview(client, combo):
    burger, fries = combo["burger"], combo["fries"]
    components = [{"product_id": burger.id, "quantity": "1"}]

    r = client.post("/products/composition/preview", json={
        "components": components, "action": "add", "product_id": fries.id, "quantity": "2",
    })
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["ok"] is True
    assert Decimal(body["cost"]) == Decimal("20.00")
    assert Decimal(body["channel_base_price"]) == Decimal("17.00")

    r = client.post("/products/composition/preview", json={
        "components": components, "action": "add", "product_id": burger.id, "quantity": "1",
    })
    body = r.json()
    assert body["ok"] is False
    assert body["message"] == "Este produto já foi adicionado à composição."
    assert len(body["components"]) == 1

    r = client.post("/products/composition/preview", json={
        "components": components, "action": "set_quantity", "product_id": burger.id, "quantity": "0",
    })
    assert r.json()["ok"] is False


def test_price_lookup_by_code_then_name(client, combo):
    r = client.get("/products/price-lookup", params={"code": "COMBO-1"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["product"]["name"] == "Combo"
    assert Decimal(body["components_total"]) == Decimal("34.00")
    assert Decimal(body["total_units"]) == Decimal("3")

    r = client.get("/products/price-lookup", params={"code": "fries"})
    assert r.json()["product"]["name"] == "Fries"
    assert r.json()["components"] == []

    r = client.get("/products/price-lookup", params={"code": "nada"})
    assert r.status_code == 404


def test_categories_crud(client):
    r = client.post("/categories", json={"name": "Lanches"})
    assert r.status_code == 201, r.text
    cat_id = r.json()["id"]

    assert client.post("/categories", json={"name": "Lanches"}).status_code == 409

    p = _create(client, name="Burger", sale_price="18.00", category_ids=[cat_id])
    assert [c["name"] for c in p["categories"]] == ["Lanches"]
    assert len(client.get("/products", params={"category_id": cat_id}).json()) == 1

    r = client.put(f"/categories/{cat_id}", json={"name": "Sanduíches"})
    assert r.status_code == 200
    assert r.json()["name"] == "Sanduíches"

    assert client.delete(f"/categories/{cat_id}").status_code == 204
    assert client.get("/categories").json() == []
    assert client.get(f"/products/{p['id']}").json()["categories"] == []
