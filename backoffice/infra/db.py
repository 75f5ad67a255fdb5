from __future__ import annotations

import logging
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from backoffice.config import DATABASE_URL, SQL_ECHO

logger = logging.getLogger(__name__)


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    DATABASE_URL,
    connect_args=_connect_args(DATABASE_URL),
    pool_pre_ping=True,
    echo=SQL_ECHO,
    future=True,
)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    future=True,
)


def get_db() -> Iterator[Session]:
    """
    Uma sessão por request: commit no final, rollback se algo falhar.
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        logger.warning("rollback da sessão após erro no request")
        db.rollback()
        raise
    finally:
        db.close()
