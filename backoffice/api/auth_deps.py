from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from backoffice.api.deps import DBSession
from backoffice.infra.models import UserORM
from backoffice.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False)

credentials_exception = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Não autenticado.",
    headers={"WWW-Authenticate": "Bearer"},
)


def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = DBSession,
) -> UserORM:
    if creds is None or creds.scheme.lower() != "bearer":
        raise credentials_exception

    try:
        payload = decode_access_token(creds.credentials)
        user_id = int(payload["sub"])
    except ValueError as e:
        logger.warning("[auth] token rejeitado: %s", e)
        raise credentials_exception

    user = db.get(UserORM, user_id)
    if not user:
        raise credentials_exception
    return user
