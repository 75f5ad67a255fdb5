from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import select

from backoffice.api.deps import DBSession
from backoffice.api.auth_deps import get_current_user
from backoffice.infra.models import UserORM
from backoffice.schemas.auth import LoginIn, TokenOut
from backoffice.schemas.users import UserOut
from backoffice.services.security import verify_password
from backoffice.services.jwt_service import create_access_token

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=TokenOut)
def login(payload: LoginIn, db: Session = DBSession):
    email = payload.email.strip().lower()

    user = db.execute(select(UserORM).where(UserORM.email == email)).scalars().first()
    if not user or not verify_password(payload.password, user.password_hash):
        logger.info("login recusado email=%s", email)
        raise HTTPException(status_code=401, detail="Credenciais inválidas.")

    token = create_access_token(sub=str(user.id), role=user.role.value)
    return TokenOut(access_token=token)


@router.get("/me", response_model=UserOut)
def me(user: UserORM = Depends(get_current_user)):
    return user
