"""Map exceptions to JSON error responses."""

import traceback
from typing import Any, Callable, Coroutine

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.responses import Response

from marketplace.errors import MarketplaceError
from marketplace.logging import log_error

ExceptionHandler = Callable[[Request, Exception], Coroutine[Any, Any, Response]]


def _field_errors(exc: RequestValidationError) -> list[dict[str, str]]:
    details = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        details.append({"field": ".".join(location), "message": error.get("msg", "")})
    return details


async def marketplace_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = exc if isinstance(exc, MarketplaceError) else MarketplaceError(str(exc))
    content: dict[str, Any] = {"error": error.message}
    if error.details is not None:
        content["details"] = error.details
    return JSONResponse(status_code=error.status_code, content=content)


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = exc if isinstance(exc, RequestValidationError) else RequestValidationError([])
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid data", "details": _field_errors(error)},
    )


async def general_500_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log_error(
        error_type=type(exc).__name__,
        message=str(exc),
        stack_trace=traceback.format_exc(),
        context={"method": request.method, "path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


# Exception handler mapping
EXCEPTION_HANDLERS: dict[type[Exception], ExceptionHandler] = {
    MarketplaceError: marketplace_error_handler,
    RequestValidationError: validation_error_handler,
    SQLAlchemyError: general_500_exception_handler,
    Exception: general_500_exception_handler,
}


def register_exception_handlers(app: FastAPI) -> None:
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
