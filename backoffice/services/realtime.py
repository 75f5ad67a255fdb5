"""
Feed de mudanças na tabela de vendas.

Inserts/updates em SaleORM são anotados na sessão e publicados só depois do
commit; rollback descarta. Quem assina recebe SaleChange e deve buscar de
novo o que precisa (entrega pelo menos uma vez, sem ordem garantida).
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, TypeVar

from sqlalchemy import event
from sqlalchemy.orm import Session, object_session

from backoffice.infra.models import SaleORM

logger = logging.getLogger(__name__)

_SESSION_KEY = "sale_changes"

T = TypeVar("T")


@dataclass(frozen=True)
class SaleChange:
    sale_id: int
    kind: str  # insert | update


Subscriber = Callable[[SaleChange], None]


class SaleChangeFeed:
    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def publish(self, change: SaleChange) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for cb in subscribers:
            try:
                cb(change)
            except Exception:
                # um assinante com problema não derruba os outros
                logger.exception("falha no assinante do feed de vendas (sale_id=%s)", change.sale_id)


sale_feed = SaleChangeFeed()


class PendingOrdersBoard(Generic[T]):
    """
    Lista de pedidos pendentes que se atualiza buscando tudo de novo a cada
    aviso do feed.

    Com `on_change`, o aviso só é repassado e quem assina chama `refresh()`
    na thread que preferir (o aviso chega na thread do commit).
    """

    def __init__(
        self,
        loader: Callable[[], List[T]],
        on_change: Optional[Callable[[SaleChange], None]] = None,
    ) -> None:
        self._loader = loader
        self._on_change = on_change
        self.orders: List[T] = []
        self._unsubscribe: Callable[[], None] | None = None

    def refresh(self) -> List[T]:
        self.orders = list(self._loader())
        return self.orders

    def start(self, feed: SaleChangeFeed = sale_feed) -> None:
        self.refresh()
        self._unsubscribe = feed.subscribe(self._changed)

    def _changed(self, change: SaleChange) -> None:
        if self._on_change is not None:
            self._on_change(change)
        else:
            self.refresh()

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None


def _remember(target: SaleORM, kind: str) -> None:
    session = object_session(target)
    if session is None:
        return
    session.info.setdefault(_SESSION_KEY, []).append(SaleChange(target.id, kind))


@event.listens_for(SaleORM, "after_insert")
def _sale_inserted(mapper, connection, target: SaleORM) -> None:
    _remember(target, "insert")


@event.listens_for(SaleORM, "after_update")
def _sale_updated(mapper, connection, target: SaleORM) -> None:
    _remember(target, "update")


@event.listens_for(Session, "after_commit")
def _publish_after_commit(session: Session) -> None:
    changes = session.info.pop(_SESSION_KEY, [])
    for change in changes:
        sale_feed.publish(change)


@event.listens_for(Session, "after_soft_rollback")
def _discard_after_rollback(session: Session, previous_transaction) -> None:
    session.info.pop(_SESSION_KEY, None)
