from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import select

from backoffice.api.deps import DBSession
from backoffice.api.auth_deps import get_current_user
from backoffice.infra.models import UserORM, UserRole
from backoffice.schemas.users import UserCreate, UserOut
from backoffice.services.security import hash_password

router = APIRouter(dependencies=[Depends(get_current_user)])


@router.post("", response_model=UserOut, status_code=201)
def create_user(payload: UserCreate, db: Session = DBSession):
    email = payload.email.strip().lower()
    exists = db.scalar(select(UserORM.id).where(UserORM.email == email))
    if exists:
        raise HTTPException(status_code=409, detail="Email já cadastrado.")

    user = UserORM(
        name=payload.name.strip(),
        email=email,
        password_hash=hash_password(payload.password),
        role=payload.role or UserRole.STAFF,
    )
    db.add(user)
    db.flush()
    return user
