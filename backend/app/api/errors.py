"""Translate domain errors into HTTP errors for the routers."""
from fastapi import HTTPException, status

from app.core.exceptions import (
    CommissionEngineError, NotFoundError, PersistenceError,
    StateTransitionError, ValidationError,
)

_STATUS_CODES = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    StateTransitionError: status.HTTP_409_CONFLICT,
    PersistenceError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def http_error(exc: CommissionEngineError) -> HTTPException:
    for exc_type, code in _STATUS_CODES.items():
        if isinstance(exc, exc_type):
            return HTTPException(status_code=code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
