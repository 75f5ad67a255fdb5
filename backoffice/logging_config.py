from __future__ import annotations

import logging

from backoffice.config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
    # o echo do SQLAlchemy é controlado por SQL_ECHO, não pelo nível raiz
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
