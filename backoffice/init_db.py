from __future__ import annotations

import logging
import os

from sqlalchemy.orm import Session

from backoffice.infra.db import SessionLocal, engine
from backoffice.infra.models import Base, UserORM, UserRole
from backoffice.logging_config import setup_logging
from backoffice.services.security import hash_password

logger = logging.getLogger(__name__)


def ensure_admin(db: Session) -> UserORM:
    email = os.getenv("ADMIN_EMAIL", "admin@admin.com").strip().lower()
    user = db.query(UserORM).filter(UserORM.email == email).first()
    if user:
        return user

    user = UserORM(
        name="Admin",
        email=email,
        password_hash=hash_password(os.getenv("ADMIN_PASSWORD", "admin123")),
        role=UserRole.ADMIN,
    )
    db.add(user)
    db.commit()
    logger.info("admin criado: %s", email)
    return user


def main():
    setup_logging()
    Base.metadata.create_all(bind=engine)
    logger.info("Tabelas criadas!")
    with SessionLocal() as db:
        ensure_admin(db)


if __name__ == "__main__":
    main()
