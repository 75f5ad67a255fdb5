from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backoffice.config import CORS_ORIGINS
from backoffice.logging_config import setup_logging
from backoffice.infra.db import SessionLocal, engine
from backoffice.infra.models import Base

from backoffice.api.routers.auth import router as auth_router
from backoffice.api.routers.users import router as users_router
from backoffice.api.routers.categories import router as categories_router
from backoffice.api.routers.products import router as products_router
from backoffice.api.routers.sales import router as sales_router, ws_router as sales_ws_router
from backoffice.api.routers.preparation import router as preparation_router
from backoffice.api.routers.quotes import router as quotes_router
from backoffice.api.routers.uploads import router as uploads_router

# registra os listeners do feed de vendas
import backoffice.services.realtime  # noqa: F401

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Backoffice PDV API")

# sessões fora do ciclo request (websocket)
app.state.session_factory = SessionLocal


@app.on_event("startup")
def _startup() -> None:
    logger.info("[startup] creating tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("[startup] tables created/checked")


app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(users_router, prefix="/users", tags=["users"])
app.include_router(categories_router, prefix="/categories", tags=["categories"])
app.include_router(products_router, prefix="/products", tags=["products"])
app.include_router(sales_router, prefix="/sales", tags=["sales"])
app.include_router(sales_ws_router, prefix="/sales", tags=["sales"])
app.include_router(preparation_router, prefix="/preparation", tags=["preparation"])
app.include_router(quotes_router, prefix="/quotes", tags=["quotes"])
app.include_router(uploads_router, prefix="/uploads", tags=["uploads"])
