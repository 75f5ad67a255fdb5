from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from backoffice.api.deps import DBSession
from backoffice.api.auth_deps import get_current_user
from backoffice.api.errors import http_error
from backoffice.schemas.categories import CategoryCreate, CategoryOut, CategoryUpdate
from backoffice.services import catalog_service
from backoffice.services.errors import StoreError

router = APIRouter(dependencies=[Depends(get_current_user)])


@router.get("", response_model=list[CategoryOut])
def list_categories(db: Session = DBSession):
    return catalog_service.list_categories(db)


@router.post("", response_model=CategoryOut, status_code=201)
def create_category(payload: CategoryCreate, db: Session = DBSession):
    try:
        return catalog_service.create_category(db, name=payload.name, description=payload.description)
    except (ValueError, StoreError) as e:
        raise http_error(e)


@router.put("/{category_id}", response_model=CategoryOut)
def update_category(category_id: int, payload: CategoryUpdate, db: Session = DBSession):
    try:
        return catalog_service.update_category(
            db, category_id, name=payload.name, description=payload.description
        )
    except (ValueError, StoreError) as e:
        raise http_error(e)


@router.delete("/{category_id}", status_code=204)
def delete_category(category_id: int, db: Session = DBSession):
    try:
        catalog_service.delete_category(db, category_id)
    except (ValueError, StoreError) as e:
        raise http_error(e)
    return Response(status_code=204)
