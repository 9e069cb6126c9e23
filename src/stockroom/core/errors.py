"""Domain errors and the handlers that render them as ``{"error": ...}``."""

from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .logging_config import get_logger

logger = get_logger(__name__)


class StockroomError(RuntimeError):
    """Base class for errors that map onto an HTTP status."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, **extra: object) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra


class Unauthorized(StockroomError):
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(StockroomError):
    status_code = status.HTTP_403_FORBIDDEN


class InvalidInput(StockroomError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(StockroomError):
    status_code = status.HTTP_404_NOT_FOUND


class BusinessRuleViolation(StockroomError):
    status_code = status.HTTP_400_BAD_REQUEST


class InsufficientStock(BusinessRuleViolation):
    """Raised when an issue line asks for more than the balance holds."""

    def __init__(self, item_name: str, on_hand: object) -> None:
        super().__init__(f"Insufficient stock for {item_name}. On hand: {on_hand}")
        self.item_name = item_name
        self.on_hand = on_hand


class InternalError(StockroomError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def _error_response(status_code: int, message: str, **extra: object) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


async def _stockroom_error_handler(request: Request, exc: StockroomError) -> JSONResponse:
    return _error_response(exc.status_code, exc.message, **exc.extra)


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content=exc.detail, headers=exc.headers)
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return _error_response(status.HTTP_400_BAD_REQUEST, "; ".join(problems) or "Invalid request")


def install_error_handlers(application: FastAPI) -> None:
    application.add_exception_handler(StockroomError, _stockroom_error_handler)
    application.add_exception_handler(StarletteHTTPException, _http_error_handler)
    application.add_exception_handler(RequestValidationError, _validation_error_handler)
