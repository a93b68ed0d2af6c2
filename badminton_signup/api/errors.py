from __future__ import annotations
from fastapi import HTTPException, status

from ..services.errors import RosterError, NotFound, AuthFailure, InvalidState, StoreFailure

_STATUS = {
    NotFound: status.HTTP_404_NOT_FOUND,
    InvalidState: status.HTTP_409_CONFLICT,
    AuthFailure: status.HTTP_401_UNAUTHORIZED,
    StoreFailure: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def to_http(e: RosterError) -> HTTPException:
    code = _STATUS.get(type(e), status.HTTP_500_INTERNAL_SERVER_ERROR)
    if isinstance(e, StoreFailure):
        # storage details stay in the logs
        return HTTPException(status_code=code, detail="storage unavailable, try again")
    if isinstance(e, NotFound):
        return HTTPException(status_code=code, detail=f"{e} not found")
    return HTTPException(status_code=code, detail=str(e))
