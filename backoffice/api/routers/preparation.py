from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backoffice.api.deps import DBSession
from backoffice.api.auth_deps import get_current_user
from backoffice.api.errors import http_error
from backoffice.schemas.preparation import CompletePreparationIn, PicklistOut, PreparationOutcomeOut
from backoffice.services import preparation_service
from backoffice.services.errors import StoreError
from backoffice.services.preparation_service import PickInput

router = APIRouter(dependencies=[Depends(get_current_user)])


@router.get("/{sale_id}", response_model=PicklistOut)
def get_picklist(sale_id: int, db: Session = DBSession):
    try:
        return preparation_service.build_picklist(db, sale_id)
    except ValueError as e:
        raise http_error(e)


@router.post("/{sale_id}/complete", response_model=PreparationOutcomeOut)
def complete_preparation(sale_id: int, payload: CompletePreparationIn, db: Session = DBSession):
    picks = [PickInput(p.item_id, p.quantity, p.component_id) for p in payload.picks]
    try:
        return preparation_service.complete_preparation(db, sale_id, picks)
    except (ValueError, StoreError) as e:
        raise http_error(e)
