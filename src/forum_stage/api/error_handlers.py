"""Global exception handlers mapping service errors onto HTTP responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from forum_stage.core.errors import (
    ConflictRetryExhausted,
    DuplicateAccount,
    ForumError,
    InvalidInput,
    StorageUnavailable,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[ForumError], int]] = [
    (InvalidInput, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (DuplicateAccount, status.HTTP_409_CONFLICT),
    (ConflictRetryExhausted, status.HTTP_409_CONFLICT),
    (StorageUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_for(exc: ForumError) -> int:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def register_error_handlers(app: FastAPI) -> None:
    """Register the forum error handler on the FastAPI app."""

    @app.exception_handler(ForumError)
    async def forum_error_handler(request: Request, exc: ForumError) -> JSONResponse:
        code = status_for(exc)
        if code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.__cause__ or exc)
            detail = "Service temporarily unavailable"
        else:
            logger.info("%s on %s: %s", type(exc).__name__, request.url.path, exc)
            detail = str(exc)
        return JSONResponse(status_code=code, content={"detail": detail})
