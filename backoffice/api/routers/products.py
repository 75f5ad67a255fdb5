from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from backoffice.api.deps import DBSession
from backoffice.api.auth_deps import get_current_user
from backoffice.api.errors import http_error
from backoffice.schemas.products import (
    CompositionLineOut,
    CompositionPreviewIn,
    CompositionPreviewOut,
    PriceLookupOut,
    ProductBrief,
    ProductCreate,
    ProductOut,
    ProductUpdate,
)
from backoffice.services import catalog_service
from backoffice.services.composition import ComponentLine, channel_base_price, compute_sale_total
from backoffice.services.errors import StoreError

router = APIRouter(dependencies=[Depends(get_current_user)])


def _line_out(line: ComponentLine) -> CompositionLineOut:
    return CompositionLineOut(
        product_id=line.product.id,
        name=line.product.name,
        quantity=line.quantity,
        cost_price=line.product.cost_price,
        sale_price=line.product.sale_price,
        cost_total=line.cost_total,
        sale_total=line.sale_total,
    )


def _channels_arg(channels) -> Optional[dict]:
    if channels is None:
        return None
    return {name: (c.price, c.margin) for name, c in channels.items()}


@router.get("", response_model=list[ProductOut])
def list_products(
    db: Session = DBSession,
    q: Optional[str] = Query(default=None, description="Busca por código de barras/SKU/nome"),
    active: Optional[bool] = Query(default=True),
    category_id: Optional[int] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    return catalog_service.list_products(
        db, q=q, active=active, category_id=category_id, limit=limit, offset=offset
    )


@router.post("", response_model=ProductOut, status_code=201)
def create_product(payload: ProductCreate, db: Session = DBSession):
    try:
        return catalog_service.create_product(
            db,
            name=payload.name,
            description=payload.description,
            barcode=payload.barcode,
            sku=payload.sku,
            cost_price=payload.cost_price,
            sale_price=payload.sale_price,
            default_profit_margin=payload.default_profit_margin,
            is_composition=payload.is_composition,
            components=[(c.product_id, c.quantity) for c in payload.components],
            channels=_channels_arg(payload.channels),
            category_ids=payload.category_ids,
            image_urls=payload.image_urls,
            manages_stock=payload.manages_stock,
            sell_online=payload.sell_online,
            sell_shopee=payload.sell_shopee,
            sell_mercado_livre=payload.sell_mercado_livre,
            quantity=payload.quantity,
        )
    except (ValueError, StoreError) as e:
        raise http_error(e)


@router.get("/component-candidates", response_model=list[ProductBrief])
def component_candidates(
    db: Session = DBSession,
    q: str = Query(..., min_length=1),
    exclude_product_id: Optional[int] = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
):
    return catalog_service.search_component_candidates(
        db, q, exclude_product_id=exclude_product_id, limit=limit
    )


@router.post("/composition/preview", response_model=CompositionPreviewOut)
def composition_preview(payload: CompositionPreviewIn, db: Session = DBSession):
    try:
        change = catalog_service.preview_composition(
            db,
            [(c.product_id, c.quantity) for c in payload.components],
            action=payload.action,
            product_id=payload.product_id,
            quantity=payload.quantity,
            parent_id=payload.parent_id,
        )
    except ValueError as e:
        raise http_error(e)

    return CompositionPreviewOut(
        ok=change.ok,
        message=change.message,
        components=[_line_out(c) for c in change.components],
        cost=change.cost,
        sale_total=compute_sale_total(change.components),
        channel_base_price=channel_base_price(change.components),
    )


@router.get("/price-lookup", response_model=PriceLookupOut)
def price_lookup(db: Session = DBSession, code: str = Query(..., min_length=1)):
    try:
        found = catalog_service.lookup_price(db, code)
    except ValueError as e:
        raise http_error(e)

    return PriceLookupOut(
        product=ProductBrief.model_validate(found["product"]),
        components=[_line_out(c) for c in found["components"]],
        components_total=found["components_total"],
        total_units=found["total_units"],
    )


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: int, db: Session = DBSession):
    try:
        return catalog_service.get_product(db, product_id)
    except ValueError as e:
        raise http_error(e)


@router.put("/{product_id}", response_model=ProductOut)
def update_product(product_id: int, payload: ProductUpdate, db: Session = DBSession):
    changes = payload.model_dump(exclude_unset=True, exclude={"components", "channels"})
    if payload.components is not None:
        changes["components"] = [(c.product_id, c.quantity) for c in payload.components]
    if payload.channels is not None:
        changes["channels"] = _channels_arg(payload.channels)

    try:
        return catalog_service.update_product(db, product_id, **changes)
    except (ValueError, StoreError) as e:
        raise http_error(e)


@router.delete("/{product_id}", response_model=ProductOut)
def deactivate_product(product_id: int, db: Session = DBSession):
    # desativa, não apaga
    try:
        return catalog_service.deactivate_product(db, product_id)
    except (ValueError, StoreError) as e:
        raise http_error(e)
