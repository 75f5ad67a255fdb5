from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from backoffice.api.deps import DBSession
from backoffice.api.auth_deps import get_current_user
from backoffice.api.errors import http_error
from backoffice.schemas.quotes import QuoteIn, QuoteLineOut, QuoteOut
from backoffice.schemas.sales import ExpandedComponentOut
from backoffice.services.quote_service import Quote, build_quote
from backoffice.services.receipt import build_quote_html
from backoffice.services.sales_service import CartLine

router = APIRouter(dependencies=[Depends(get_current_user)])


def _build(payload: QuoteIn, db: Session) -> Quote:
    try:
        return build_quote(
            db,
            [CartLine(i.product_id, i.quantity) for i in payload.items],
            customer_name=payload.customer_name,
            notes=payload.notes,
        )
    except ValueError as e:
        raise http_error(e)


@router.post("", response_model=QuoteOut)
def simulate_quote(payload: QuoteIn, db: Session = DBSession):
    quote = _build(payload, db)
    return QuoteOut(
        lines=[
            QuoteLineOut(
                product_id=e.line.product.id,
                name=e.line.product.name,
                is_composition=e.line.product.is_composition,
                quantity=e.line.quantity,
                unit_price=e.line.unit_price,
                total_price=e.line.total_price,
                components=[ExpandedComponentOut.model_validate(c) for c in e.components],
            )
            for e in quote.entries
        ],
        total=quote.total,
        issued_at=quote.issued_at,
        valid_until=quote.valid_until,
        customer_name=quote.customer_name,
        notes=quote.notes,
    )


@router.post("/print", response_class=HTMLResponse)
def print_quote(payload: QuoteIn, db: Session = DBSession):
    return HTMLResponse(build_quote_html(_build(payload, db)))
