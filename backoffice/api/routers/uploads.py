from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from backoffice.api.auth_deps import get_current_user
from backoffice.infra.storage import ALLOWED_CT, StorageError, upload_image

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(get_current_user)])


@router.post("", status_code=201)
def upload(file: UploadFile = File(...)):
    ct = (file.content_type or "").lower()
    if ct not in ALLOWED_CT:
        raise HTTPException(
            status_code=415,
            detail=f"Tipo de arquivo não suportado: {file.content_type}. Use jpeg/png/webp.",
        )

    content = file.file.read()
    if not content:
        raise HTTPException(status_code=422, detail="Arquivo de imagem vazio.")

    try:
        url = upload_image(content=content, content_type=ct, prefix="products/temp")
    except StorageError as e:
        logger.error("falha no upload de %s: %s", file.filename, e)
        raise HTTPException(status_code=502, detail=str(e))
    return {"url": url}
