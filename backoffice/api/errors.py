from __future__ import annotations

from fastapi import HTTPException

from backoffice.services.errors import ConflictError, NotFoundError, StoreError


def http_error(e: Exception) -> HTTPException:
    """Erro de serviço -> resposta HTTP com a mensagem para o usuário."""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ConflictError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, StoreError):
        return HTTPException(status_code=502, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))
