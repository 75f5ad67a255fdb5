from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class NotFoundError(ValueError):
    pass


class ConflictError(ValueError):
    pass


class StoreError(RuntimeError):
    """Escrita/leitura rejeitada pelo banco."""


@contextmanager
def store_write(db: Session, action: str) -> Iterator[None]:
    """
    Envolve escritas no banco: falha vira StoreError e a sessão volta ao
    estado anterior.
    """
    try:
        yield
        db.flush()
    except IntegrityError as e:
        logger.warning("conflito ao %s: %s", action, e.orig)
        db.rollback()
        raise ConflictError(f"Conflito ao {action}.") from e
    except SQLAlchemyError as e:
        logger.exception("erro no banco ao %s", action)
        db.rollback()
        raise StoreError(f"Erro ao {action}.") from e
