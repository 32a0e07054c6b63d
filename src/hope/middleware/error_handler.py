"""Global error handlers: every failure leaves as ``{success: false, message, error}``."""

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from hope.errors import LedgerError

logger = structlog.get_logger()


def failure(status_code: int, message: str, error: object = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "error": jsonable_encoder(error)},
    )


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
        """Business outcomes go out verbatim; conflicts and upstream failures are logged."""
        if exc.expected:
            return failure(exc.status_code, exc.message, exc.error_code)

        logger.error(
            "ledger_operation_failed",
            path=request.url.path,
            method=request.method,
            error_code=exc.error_code,
            error=exc.message,
        )
        return failure(exc.status_code, getattr(exc, "public_message", exc.message), exc.error_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        response = failure(exc.status_code, str(exc.detail), "http_error")
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else "Validation error"
        return failure(422, message, errors)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions, always JSON."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return failure(500, "Internal server error", "internal_error")
