# ------------------------------------------
# Error taxonomy and boundary exception handlers
# - AuthErrorKind: expected failure kinds and their HTTP status
# - ServiceError: raised by user administration services
# - register_exception_handlers(): uniform {success, message, errors} bodies,
#   unexpected errors logged and answered with a generic 500
# ------------------------------------------

import enum
import logging
from typing import List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An error occurred while processing your request"


class AuthErrorKind(str, enum.Enum):
    validation = "ValidationFailure"
    authentication = "AuthenticationFailure"
    account_locked = "AccountLocked"
    token_invalid = "TokenInvalid"
    forbidden = "Forbidden"
    not_found = "NotFound"


ERROR_STATUS = {
    AuthErrorKind.validation: status.HTTP_400_BAD_REQUEST,
    AuthErrorKind.authentication: status.HTTP_400_BAD_REQUEST,
    AuthErrorKind.account_locked: status.HTTP_400_BAD_REQUEST,
    AuthErrorKind.token_invalid: status.HTTP_400_BAD_REQUEST,
    AuthErrorKind.forbidden: status.HTTP_403_FORBIDDEN,
    AuthErrorKind.not_found: status.HTTP_404_NOT_FOUND,
}


def status_for(kind: Optional[AuthErrorKind]) -> int:
    return ERROR_STATUS.get(kind, status.HTTP_400_BAD_REQUEST)


class ServiceError(Exception):
    def __init__(self, kind: AuthErrorKind, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.errors = errors or []


def error_body(message: str, errors: Optional[List[str]] = None) -> dict:
    return {"success": False, "message": message, "errors": errors or []}


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError):
        logger.info(f"{request.method} {request.url.path} -> {exc.kind.value}: {exc.message}")
        return JSONResponse(status_code=status_for(exc.kind), content=error_body(exc.message, exc.errors))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else GENERIC_ERROR_MESSAGE
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(message),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        errors = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
            errors.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=error_body("Invalid request", errors))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(GENERIC_ERROR_MESSAGE),
        )
