from __future__ import annotations

import os

# o app cria as tabelas no startup: nunca no arquivo de dev
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backoffice.main import app
from backoffice.infra.models import Base, ProductComponentORM, ProductORM, UserORM, UserRole
from backoffice.infra.db import get_db
from backoffice.services.jwt_service import create_access_token
from backoffice.services.security import hash_password


@pytest.fixture()
def engine():
    """
    Banco de teste em SQLite em memória, um por teste.
    """
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@pytest.fixture()
def user(db_session):
    u = UserORM(
        name="Operador",
        email="operador@loja.com",
        password_hash=hash_password("segredo123"),
        role=UserRole.ADMIN,
    )
    db_session.add(u)
    db_session.commit()
    return u


@pytest.fixture()
def auth_headers(user):
    token = create_access_token(sub=str(user.id), role=user.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def client(db_session, session_factory, auth_headers):
    # override do get_db para usar SQLite em memória nos testes;
    # commit no fim do request como no get_db real (dispara o feed de vendas)
    def _override_get_db():
        try:
            yield db_session
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise

    app.dependency_overrides[get_db] = _override_get_db
    previous_factory = app.state.session_factory
    app.state.session_factory = session_factory

    with TestClient(app) as c:
        c.headers.update(auth_headers)
        yield c

    app.dependency_overrides.clear()
    app.state.session_factory = previous_factory


@pytest.fixture()
def make_product(db_session):
    def _make(name, *, cost="0.00", sale="0.00", barcode=None, sku=None, is_composition=False, active=True):
        p = ProductORM(
            name=name,
            barcode=barcode,
            sku=sku,
            cost_price=Decimal(cost),
            sale_price=Decimal(sale),
            is_composition=is_composition,
            active=active,
        )
        db_session.add(p)
        db_session.commit()
        return p

    return _make


@pytest.fixture()
def combo(db_session, make_product):
    """
    Combo = 1 Burger (custo 10,00 / venda 18,00) + 2 Fries (custo 5,00 / venda 8,00).
    """
    burger = make_product("Burger", cost="10.00", sale="18.00", barcode="7890000000011")
    fries = make_product("Fries", cost="5.00", sale="8.00", barcode="7890000000028")
    combo = make_product("Combo", cost="20.00", sale="30.00", sku="COMBO-1", is_composition=True)
    db_session.add_all([
        ProductComponentORM(parent_product_id=combo.id, component_product_id=burger.id, quantity=Decimal("1")),
        ProductComponentORM(parent_product_id=combo.id, component_product_id=fries.id, quantity=Decimal("2")),
    ])
    db_session.commit()
    return {"burger": burger, "fries": fries, "combo": combo}
