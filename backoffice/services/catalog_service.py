# backoffice/services/catalog_service.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session, selectinload

from backoffice.infra.models import (
    CategoryORM,
    ProductComponentORM,
    ProductImageORM,
    ProductORM,
)
from backoffice.services.composition import (
    NESTED_MESSAGE,
    ComponentChange,
    ComponentLine,
    ProductRef,
    add_component,
    channel_base_price,
    compute_cost,
    compute_sale_total,
    lines_from_relations,
    remove_component,
    set_component_quantity,
    total_units,
)
from backoffice.services.errors import ConflictError, NotFoundError, store_write
from backoffice.services.money import (
    compute_margin_from_prices,
    compute_sale_price_from_margin,
    quantize_money,
    to_decimal,
)

logger = logging.getLogger(__name__)

MAX_IMAGES = 3

# canal -> (coluna de preço, coluna de margem)
CHANNELS: dict[str, tuple[str, str]] = {
    "virtual_store": ("sale_price_virtual_store", "profit_margin_virtual_shop"),
    "shopee": ("sale_price_shopee", "profit_margin_shopee"),
    "mercado_livre": ("sale_price_mercado_livre", "profit_margin_mercado_livre"),
}

_SIMPLE_FIELDS = (
    "description", "manages_stock", "sell_online", "sell_shopee",
    "sell_mercado_livre", "quantity", "active",
)


# helpers
def _clean(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    return v or None


def _product_query():
    return select(ProductORM).options(
        selectinload(ProductORM.images),
        selectinload(ProductORM.categories),
        selectinload(ProductORM.components).selectinload(ProductComponentORM.component),
    )


def get_product(db: Session, product_id: int) -> ProductORM:
    product = db.execute(_product_query().where(ProductORM.id == product_id)).scalars().first()
    if not product:
        raise NotFoundError("Produto não encontrado.")
    return product


def _ensure_unique_codes(db: Session, *, barcode: Optional[str], sku: Optional[str], product_id: Optional[int] = None) -> None:
    for col, value, label in ((ProductORM.barcode, barcode, "Código de barras"), (ProductORM.sku, sku, "SKU")):
        if not value:
            continue
        stmt = select(ProductORM.id).where(col == value, ProductORM.active.is_(True))
        if product_id is not None:
            stmt = stmt.where(ProductORM.id != product_id)
        if db.scalar(stmt):
            raise ConflictError(f"{label} já cadastrado.")


def _load_categories(db: Session, category_ids: Sequence[int]) -> list[CategoryORM]:
    ids = list(dict.fromkeys(category_ids))
    if not ids:
        return []
    found = db.execute(select(CategoryORM).where(CategoryORM.id.in_(ids))).scalars().all()
    if len(found) != len(ids):
        raise ValueError("Categoria inválida.")
    return list(found)


def build_component_lines(
    db: Session,
    items: Sequence[tuple[int, Decimal]],
    *,
    parent_id: Optional[int] = None,
) -> list[ComponentLine]:
    """
    (product_id, quantidade)[] -> ComponentLine[], aplicando as mesmas regras
    de add_component; a primeira recusa vira ValueError.
    """
    ids = [pid for pid, _ in items]
    products = {
        p.id: p
        for p in db.execute(select(ProductORM).where(ProductORM.id.in_(ids))).scalars().all()
    } if ids else {}

    lines: tuple[ComponentLine, ...] = ()
    for pid, qty in items:
        product = products.get(pid)
        if not product or not product.active:
            raise ValueError(f"Componente inválido: produto {pid}.")
        change = add_component(lines, ProductRef.from_orm(product), qty, parent_id=parent_id)
        if not change.ok:
            raise ValueError(change.message)
        lines = change.components
    return list(lines)


def preview_composition(
    db: Session,
    components: Sequence[tuple[int, Decimal]],
    *,
    action: str,
    product_id: int,
    quantity: Optional[Decimal] = None,
    parent_id: Optional[int] = None,
) -> ComponentChange:
    """Edição da composição na tela: devolve a lista nova e o custo, sem gravar."""
    current = build_component_lines(db, components, parent_id=parent_id)

    if action == "add":
        candidate = db.get(ProductORM, product_id)
        if not candidate or not candidate.active:
            raise NotFoundError("Produto não encontrado.")
        return add_component(current, ProductRef.from_orm(candidate), quantity, parent_id=parent_id)
    if action == "remove":
        return remove_component(current, product_id)
    if action == "set_quantity":
        return set_component_quantity(current, product_id, quantity)
    raise ValueError(f"Ação inválida: {action}")


def read_component_relations(db: Session, parent_product_id: int) -> list[ProductComponentORM]:
    stmt = (
        select(ProductComponentORM)
        .options(selectinload(ProductComponentORM.component))
        .where(ProductComponentORM.parent_product_id == parent_product_id)
        .order_by(ProductComponentORM.id.asc())
    )
    return list(db.execute(stmt).scalars().all())


def write_component_relations(db: Session, parent_product_id: int, lines: Sequence[ComponentLine]) -> None:
    """Substitui tudo: apaga as relações atuais e grava as novas."""
    with store_write(db, "salvar componentes"):
        db.execute(
            delete(ProductComponentORM).where(ProductComponentORM.parent_product_id == parent_product_id)
        )
        for line in lines:
            db.add(ProductComponentORM(
                parent_product_id=parent_product_id,
                component_product_id=line.product.id,
                quantity=line.quantity,
            ))
    # a coleção carregada no produto ficou velha
    parent = db.get(ProductORM, parent_product_id)
    if parent is not None:
        db.expire(parent, ["components"])


def channel_prices(
    *,
    base: Decimal,
    prices: dict[str, Optional[Decimal]],
    margins: dict[str, Optional[Decimal]],
) -> dict[str, tuple[Decimal, Optional[Decimal]]]:
    """
    Preço/margem por canal. Preço informado manda (a margem é derivada dele);
    sem preço, a margem gera o preço a partir da base.
    """
    out: dict[str, tuple[Decimal, Optional[Decimal]]] = {}
    for channel in CHANNELS:
        price = prices.get(channel)
        margin = margins.get(channel)
        if price is not None:
            out[channel] = (quantize_money(price), compute_margin_from_prices(base, price))
        elif margin is not None:
            out[channel] = (compute_sale_price_from_margin(base, margin), quantize_money(margin))
        else:
            out[channel] = (Decimal("0.00"), None)
    return out


def _apply_pricing(
    product: ProductORM,
    *,
    cost_price: Optional[Decimal],
    sale_price: Optional[Decimal],
    margin: Optional[Decimal],
    lines: Optional[list[ComponentLine]],
    channel_input: dict[str, tuple[Optional[Decimal], Optional[Decimal]]],
) -> None:
    if product.is_composition:
        comps = lines or []
        product.cost_price = compute_cost(comps)
        if sale_price is not None:
            product.sale_price = quantize_money(sale_price)
        elif margin is not None:
            product.sale_price = compute_sale_price_from_margin(product.cost_price, margin)
        elif lines is not None:
            # sem preço explícito: soma dos preços de venda dos componentes (0 sem componentes)
            product.sale_price = compute_sale_total(comps)
        base = channel_base_price(comps)
    else:
        if cost_price is not None:
            product.cost_price = quantize_money(cost_price)
        if sale_price is not None:
            product.sale_price = quantize_money(sale_price)
        elif margin is not None:
            product.sale_price = compute_sale_price_from_margin(product.cost_price or 0, margin)
        base = to_decimal(product.cost_price or 0)

    if margin is not None:
        product.default_profit_margin = quantize_money(margin)
    else:
        product.default_profit_margin = compute_margin_from_prices(product.cost_price, product.sale_price)

    if not channel_input:
        return
    prices = {ch: channel_input.get(ch, (None, None))[0] for ch in CHANNELS}
    margins = {ch: channel_input.get(ch, (None, None))[1] for ch in CHANNELS}
    for channel, (price, ch_margin) in channel_prices(base=base, prices=prices, margins=margins).items():
        if channel not in channel_input:
            continue
        price_col, margin_col = CHANNELS[channel]
        setattr(product, price_col, price)
        setattr(product, margin_col, ch_margin)


def _replace_images(product: ProductORM, urls: Sequence[str]) -> None:
    urls = [u.strip() for u in urls if u and u.strip()]
    if len(urls) > MAX_IMAGES:
        raise ValueError(f"Máximo de {MAX_IMAGES} imagens por produto.")
    product.images.clear()
    for idx, url in enumerate(urls, start=1):
        product.images.append(ProductImageORM(image_url=url, position=idx))


def create_product(
    db: Session,
    *,
    name: str,
    description: Optional[str] = None,
    barcode: Optional[str] = None,
    sku: Optional[str] = None,
    cost_price: Decimal = Decimal("0.00"),
    sale_price: Optional[Decimal] = None,
    default_profit_margin: Optional[Decimal] = None,
    is_composition: bool = False,
    components: Sequence[tuple[int, Decimal]] = (),
    channels: Optional[dict[str, tuple[Optional[Decimal], Optional[Decimal]]]] = None,
    category_ids: Sequence[int] = (),
    image_urls: Sequence[str] = (),
    manages_stock: bool = False,
    sell_online: bool = False,
    sell_shopee: bool = False,
    sell_mercado_livre: bool = False,
    quantity: Decimal = Decimal("0"),
) -> ProductORM:
    name = (name or "").strip()
    if not name:
        raise ValueError("Nome do produto é obrigatório.")
    barcode, sku = _clean(barcode), _clean(sku)
    _ensure_unique_codes(db, barcode=barcode, sku=sku)

    if not is_composition and components:
        raise ValueError("Produto simples não tem componentes.")

    lines = build_component_lines(db, components) if is_composition else None

    product = ProductORM(
        name=name,
        description=_clean(description),
        barcode=barcode,
        sku=sku,
        is_composition=is_composition,
        manages_stock=manages_stock,
        sell_online=sell_online,
        sell_shopee=sell_shopee,
        sell_mercado_livre=sell_mercado_livre,
        quantity=quantity,
        active=True,
        cost_price=Decimal("0.00"),
        sale_price=Decimal("0.00"),
    )
    _apply_pricing(
        product,
        cost_price=cost_price,
        sale_price=sale_price,
        margin=default_profit_margin,
        lines=lines,
        channel_input=channels or {},
    )
    product.categories = _load_categories(db, category_ids)
    _replace_images(product, image_urls)

    with store_write(db, "salvar produto"):
        db.add(product)
        db.flush()  # garante product.id
        for line in lines or []:
            db.add(ProductComponentORM(
                parent_product_id=product.id,
                component_product_id=line.product.id,
                quantity=line.quantity,
            ))

    logger.info(
        "produto criado id=%s composto=%s custo=%s venda=%s",
        product.id, product.is_composition, product.cost_price, product.sale_price,
    )
    db.expire(product, ["components"])
    return get_product(db, product.id)


def _used_as_component(db: Session, product_id: int) -> bool:
    stmt = select(ProductComponentORM.id).where(ProductComponentORM.component_product_id == product_id)
    return db.scalar(stmt.limit(1)) is not None


def _refresh_parent_costs(db: Session, product_id: int) -> None:
    """Custo do composto acompanha o custo atual dos componentes."""
    db.flush()
    parents = db.execute(
        select(ProductORM)
        .join(ProductComponentORM, ProductComponentORM.parent_product_id == ProductORM.id)
        .where(ProductComponentORM.component_product_id == product_id)
        .options(selectinload(ProductORM.components).selectinload(ProductComponentORM.component))
    ).scalars().unique().all()
    for parent in parents:
        parent.cost_price = compute_cost(lines_from_relations(parent.components))
        parent.default_profit_margin = compute_margin_from_prices(parent.cost_price, parent.sale_price)
        logger.info("custo do composto id=%s recalculado: %s", parent.id, parent.cost_price)


def update_product(db: Session, product_id: int, **changes) -> ProductORM:
    """
    Atualização parcial. Chaves ausentes não mudam nada; `components` (lista
    de (product_id, qtd)) substitui a composição inteira.
    """
    product = get_product(db, product_id)
    was_composition = product.is_composition

    if "name" in changes and changes["name"] is not None:
        name = changes["name"].strip()
        if not name:
            raise ValueError("Nome do produto é obrigatório.")
        product.name = name

    barcode = _clean(changes["barcode"]) if changes.get("barcode") is not None else product.barcode
    sku = _clean(changes["sku"]) if changes.get("sku") is not None else product.sku
    _ensure_unique_codes(db, barcode=barcode, sku=sku, product_id=product_id)
    product.barcode, product.sku = barcode, sku

    for field in _SIMPLE_FIELDS:
        if changes.get(field) is not None:
            setattr(product, field, changes[field])

    # troca simples <-> composto
    if changes.get("is_composition") is not None:
        becomes_composition = bool(changes["is_composition"])
        if becomes_composition and not was_composition and _used_as_component(db, product_id):
            raise ValueError(NESTED_MESSAGE)
        product.is_composition = becomes_composition

    lines: Optional[list[ComponentLine]] = None
    if product.is_composition:
        if changes.get("components") is not None:
            lines = build_component_lines(db, changes["components"], parent_id=product_id)
        else:
            lines = lines_from_relations(product.components)
        write_component_relations(db, product_id, lines)
    elif product.components:
        # virou simples: componentes saem
        write_component_relations(db, product_id, [])

    sale_price = changes.get("sale_price")
    composition_unchanged = was_composition and changes.get("components") is None
    if product.is_composition and composition_unchanged and sale_price is None \
            and changes.get("default_profit_margin") is None:
        # composição igual: mantém o preço de venda atual
        sale_price = product.sale_price

    _apply_pricing(
        product,
        cost_price=changes.get("cost_price"),
        sale_price=sale_price,
        margin=changes.get("default_profit_margin"),
        lines=lines,
        channel_input=changes.get("channels") or {},
    )

    if changes.get("category_ids") is not None:
        product.categories = _load_categories(db, changes["category_ids"])
    if changes.get("image_urls") is not None:
        _replace_images(product, changes["image_urls"])

    cost_changed = not product.is_composition and changes.get("cost_price") is not None

    with store_write(db, "atualizar produto"):
        if cost_changed:
            _refresh_parent_costs(db, product_id)

    logger.info("produto atualizado id=%s composto=%s", product.id, product.is_composition)
    return get_product(db, product_id)


def deactivate_product(db: Session, product_id: int) -> ProductORM:
    # nunca apaga: vendas antigas apontam para o produto
    product = get_product(db, product_id)
    product.active = False
    with store_write(db, "desativar produto"):
        pass
    logger.info("produto desativado id=%s", product_id)
    return product


def list_products(
    db: Session,
    *,
    q: Optional[str] = None,
    active: Optional[bool] = True,
    category_id: Optional[int] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[ProductORM]:
    stmt = _product_query().order_by(ProductORM.name.asc(), ProductORM.id.asc())
    if active is not None:
        stmt = stmt.where(ProductORM.active.is_(active))
    if q:
        term = f"%{q.strip()}%"
        stmt = stmt.where(
            or_(ProductORM.barcode.ilike(term), ProductORM.sku.ilike(term), ProductORM.name.ilike(term))
        )
    if category_id is not None:
        stmt = stmt.where(ProductORM.categories.any(CategoryORM.id == category_id))
    stmt = stmt.limit(limit).offset(offset)
    return list(db.execute(stmt).scalars().all())


def search_component_candidates(
    db: Session,
    term: str,
    *,
    exclude_product_id: Optional[int] = None,
    limit: int = 20,
) -> list[ProductORM]:
    """
    Produtos que podem entrar numa composição: ativos, simples e diferentes do
    produto sendo editado.
    """
    term = (term or "").strip()
    if not term:
        return []
    like = f"%{term}%"
    stmt = (
        select(ProductORM)
        .where(
            ProductORM.active.is_(True),
            ProductORM.is_composition.is_(False),
            or_(ProductORM.barcode.ilike(like), ProductORM.sku.ilike(like), ProductORM.name.ilike(like)),
        )
        .order_by(ProductORM.name.asc())
        .limit(limit)
    )
    if exclude_product_id is not None:
        stmt = stmt.where(ProductORM.id != exclude_product_id)
    return list(db.execute(stmt).scalars().all())


def lookup_price(db: Session, code: str) -> dict:
    """
    Consulta de preço: código de barras/SKU exato primeiro, depois nome.
    Para composto traz os componentes com total pelo preço de venda.
    """
    code = (code or "").strip()
    if not code:
        raise ValueError("Informe o código de barras, SKU ou nome.")

    base = _product_query().where(ProductORM.active.is_(True))
    product = db.execute(
        base.where(or_(ProductORM.barcode == code, ProductORM.sku == code))
    ).scalars().first()
    if not product:
        product = db.execute(
            base.where(ProductORM.name.ilike(f"%{code}%")).order_by(ProductORM.name.asc())
        ).scalars().first()
    if not product:
        raise NotFoundError("Produto não encontrado.")

    lines = lines_from_relations(product.components) if product.is_composition else []
    return {
        "product": product,
        "components": lines,
        "components_total": compute_sale_total(lines),
        "total_units": total_units(lines),
    }


# categorias
def create_category(db: Session, *, name: str, description: Optional[str] = None) -> CategoryORM:
    name = (name or "").strip()
    if not name:
        raise ValueError("Nome da categoria é obrigatório.")
    if db.scalar(select(CategoryORM.id).where(CategoryORM.name == name)):
        raise ConflictError("Categoria já cadastrada.")
    category = CategoryORM(name=name, description=_clean(description))
    with store_write(db, "salvar categoria"):
        db.add(category)
    return category


def update_category(db: Session, category_id: int, *, name: Optional[str] = None, description: Optional[str] = None) -> CategoryORM:
    category = db.get(CategoryORM, category_id)
    if not category:
        raise NotFoundError("Categoria não encontrada.")
    if name is not None:
        name = name.strip()
        if not name:
            raise ValueError("Nome da categoria é obrigatório.")
        exists = db.scalar(select(CategoryORM.id).where(CategoryORM.name == name, CategoryORM.id != category_id))
        if exists:
            raise ConflictError("Categoria já cadastrada.")
        category.name = name
    if description is not None:
        category.description = _clean(description)
    with store_write(db, "atualizar categoria"):
        pass
    return category


def list_categories(db: Session) -> list[CategoryORM]:
    return list(db.execute(select(CategoryORM).order_by(CategoryORM.name.asc())).scalars().all())


def delete_category(db: Session, category_id: int) -> None:
    category = db.get(CategoryORM, category_id)
    if not category:
        raise NotFoundError("Categoria não encontrada.")
    with store_write(db, "excluir categoria"):
        # primeiro os vínculos com produtos
        category.products.clear()
        db.flush()
        db.delete(category)
    logger.info("categoria excluída id=%s", category_id)
