import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from pinshare.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    DuplicateAccountError,
    DuplicateResourceError,
    InvalidInputError,
    InvalidTokenError,
    NotFoundError,
    PinServiceConfigError,
    PinServiceError,
    PinShareError,
)

logger = logging.getLogger(__name__)

# Checked in order, first match wins
_STATUS_MAP: list[tuple[type[PinShareError], int]] = [
    (InvalidTokenError, status.HTTP_403_FORBIDDEN),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (InvalidInputError, status.HTTP_400_BAD_REQUEST),
    (AccessDeniedError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (DuplicateAccountError, status.HTTP_400_BAD_REQUEST),
    (DuplicateResourceError, status.HTTP_409_CONFLICT),
]


def status_for(exc: PinShareError) -> int:
    for exc_type, code in _STATUS_MAP:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def public_message(exc: PinShareError) -> str:
    if isinstance(exc, PinServiceError) and not isinstance(exc, PinServiceConfigError):
        # Upstream detail goes to the log only
        return "File upload failed"
    if status_for(exc) >= 500 and not isinstance(exc, PinServiceConfigError):
        return "Internal server error"
    return str(exc)


async def pinshare_error_handler(request: Request, exc: PinShareError) -> JSONResponse:
    code = status_for(exc)
    if code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc!r}")
    headers = {"WWW-Authenticate": "Bearer"} if code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(status_code=code, content={"error": public_message(exc)}, headers=headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "msg": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=jsonable_encoder({"errors": errors}))


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        content = {"error": "Route not found", "path": request.url.path, "method": request.method}
    else:
        content = {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": "Internal server error"})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PinShareError, pinshare_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
