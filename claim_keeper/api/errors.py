"""Translation of domain errors into HTTP errors."""

import logging

from fastapi import HTTPException

from ..domain.errors import (
    AuthorizationError,
    ClaimKeeperError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def to_http_exception(error: ClaimKeeperError) -> HTTPException:
    """Map a domain error onto an HTTPException carrying its code."""
    if isinstance(error, AuthorizationError):
        status_code = 401 if error.code == "unauthenticated" else 403
    elif isinstance(error, NotFoundError):
        status_code = 404
    elif isinstance(error, ConflictError):
        status_code = 409
    elif isinstance(error, ValidationError):
        status_code = 422
    else:
        status_code = 400

    logger.info(f"⚠️ {type(error).__name__} ({error.code}): {error.message}")
    return HTTPException(status_code=status_code, detail=error.to_dict())
