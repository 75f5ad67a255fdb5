from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from backoffice.api.deps import DBSession
from backoffice.api.auth_deps import get_current_user
from backoffice.api.errors import http_error
from backoffice.infra.models import SaleType
from backoffice.schemas.sales import (
    CheckoutIn,
    ExpandedComponentOut,
    SaleDetailOut,
    SaleItemDetailOut,
    SaleItemOut,
    SaleListOut,
    SaleOut,
    SaleStatusUpdate,
    SaleWithItemsOut,
    ScheduleEntryOut,
)
from backoffice.services import sales_service
from backoffice.services.errors import StoreError
from backoffice.services.jwt_service import decode_access_token
from backoffice.services.order_status import coerce_status
from backoffice.services.realtime import PendingOrdersBoard, sale_feed
from backoffice.services.receipt import build_sale_receipt_html
from backoffice.services.sales_service import Adjustment, CartLine, DeliveryData

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(get_current_user)])

# websocket não passa pelo HTTPBearer: token vai na query string
ws_router = APIRouter()


def _detail_out(sale, details) -> SaleDetailOut:
    out = SaleDetailOut.model_validate(sale)
    items = [
        SaleItemDetailOut(
            **SaleItemOut.model_validate(d.item).model_dump(),
            components=[ExpandedComponentOut.model_validate(c) for c in d.components],
        )
        for d in details
    ]
    return out.model_copy(update={"items": items})


@router.post("/checkout", response_model=SaleDetailOut, status_code=201)
def checkout_endpoint(payload: CheckoutIn, db: Session = DBSession):
    delivery = None
    if payload.delivery is not None:
        delivery = DeliveryData(**payload.delivery.model_dump())

    try:
        sale = sales_service.checkout(
            db,
            items=[CartLine(i.product_id, i.quantity) for i in payload.items],
            sale_type=payload.sale_type,
            payment_method=payload.payment_method,
            notes=payload.notes,
            delivery_fee=payload.delivery_fee,
            addition=Adjustment(payload.addition.type, payload.addition.value),
            discount=Adjustment(payload.discount.type, payload.discount.value),
            delivery=delivery,
        )
        sale, details = sales_service.get_sale_detail(db, sale.id)
    except (ValueError, StoreError) as e:
        raise http_error(e)

    return _detail_out(sale, details)


@router.get("", response_model=SaleListOut)
def list_sales_endpoint(
    db: Session = DBSession,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200),
    customer_name: Optional[str] = Query(None),
    status_: Optional[str] = Query(None, alias="status"),
    sale_type: Optional[SaleType] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
):
    try:
        st = coerce_status(status_) if status_ else None
        items, total = sales_service.list_sales(
            db,
            page=page,
            page_size=page_size,
            customer_name=customer_name,
            status=st,
            sale_type=sale_type,
            date_from=date_from,
            date_to=date_to,
        )
    except ValueError as e:
        raise http_error(e)

    return SaleListOut(
        items=[SaleOut.model_validate(s) for s in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/pending", response_model=list[SaleWithItemsOut])
def pending_orders(db: Session = DBSession):
    return sales_service.list_pending_orders(db)


@router.get("/schedule", response_model=list[ScheduleEntryOut])
def delivery_schedule(db: Session = DBSession, day: Optional[date] = Query(None)):
    infos = sales_service.delivery_schedule(db, day or date.today())
    return [
        ScheduleEntryOut(
            sale_id=i.sale_id,
            customer_name=i.customer_name,
            customer_phone=i.customer_phone,
            delivery_date=i.delivery_date,
            neighborhood=i.neighborhood,
            status=i.sale.status,
            total=i.sale.total,
        )
        for i in infos
    ]


@router.get("/{sale_id}", response_model=SaleDetailOut)
def get_sale_endpoint(sale_id: int, db: Session = DBSession):
    try:
        sale, details = sales_service.get_sale_detail(db, sale_id)
    except ValueError as e:
        raise http_error(e)
    return _detail_out(sale, details)


@router.patch("/{sale_id}/status", response_model=SaleOut)
def update_sale_status_endpoint(
    sale_id: int,
    payload: SaleStatusUpdate,
    db: Session = DBSession,
):
    try:
        sale = sales_service.set_status(db, sale_id=sale_id, new_status=payload.status)
        return SaleOut.model_validate(sale)
    except (ValueError, StoreError) as e:
        raise http_error(e)


@router.get("/{sale_id}/receipt", response_class=HTMLResponse)
def sale_receipt(sale_id: int, db: Session = DBSession):
    try:
        sale, details = sales_service.get_sale_detail(db, sale_id)
    except ValueError as e:
        raise http_error(e)
    return HTMLResponse(build_sale_receipt_html(sale, details))


@ws_router.websocket("/ws")
async def pending_orders_ws(websocket: WebSocket, token: str = Query(default="")):
    """
    Lista de pedidos pendentes ao vivo: manda a lista inteira na conexão e de
    novo a cada venda gravada.
    """
    try:
        decode_access_token(token)
    except ValueError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()

    session_factory = websocket.app.state.session_factory
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def load():
        with session_factory() as db:
            return [
                SaleWithItemsOut.model_validate(s).model_dump(mode="json")
                for s in sales_service.list_pending_orders(db)
            ]

    # o feed chama na thread do commit: só sinaliza, a recarga roda aqui
    board = PendingOrdersBoard(load, on_change=lambda change: loop.call_soon_threadsafe(queue.put_nowait, change))
    await run_in_threadpool(board.start, sale_feed)
    try:
        await websocket.send_json({"orders": board.orders})
        receiver = asyncio.ensure_future(websocket.receive_text())
        while True:
            getter = asyncio.ensure_future(queue.get())
            done, _ = await asyncio.wait({receiver, getter}, return_when=asyncio.FIRST_COMPLETED)
            if getter in done:
                getter.result()
                while not queue.empty():
                    queue.get_nowait()  # vários avisos, uma recarga
                orders = await run_in_threadpool(board.refresh)
                await websocket.send_json({"orders": orders})
            else:
                getter.cancel()
            if receiver in done:
                receiver.result()  # WebSocketDisconnect sobe daqui
                receiver = asyncio.ensure_future(websocket.receive_text())
    except WebSocketDisconnect:
        logger.debug("websocket de pedidos pendentes desconectado")
    finally:
        board.stop()
