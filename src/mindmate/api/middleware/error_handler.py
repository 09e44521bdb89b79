"""
Error Handler Middleware

Consistent error responses with correlation IDs.

Domain errors map to status codes:
    ValidationError -> 400
    NotFoundError   -> 404
    TransportError  -> 502 (model endpoint unavailable)
Anything else is logged and returned as a sanitized 500.
"""

import traceback
from uuid import uuid4

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from mindmate.config.logging_config import bind_correlation_id, clear_context, get_logger
from mindmate.domain.errors import NotFoundError, ValidationError
from mindmate.infrastructure.llm import TransportError

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Global error handling middleware.

    Binds a correlation ID to every log line of the request and turns
    unhandled exceptions into a 500 that leaks nothing.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid4())
        bind_correlation_id(correlation_id)

        try:
            response = await call_next(request)
            response.headers[CORRELATION_HEADER] = correlation_id
            return response

        except Exception as e:
            logger.error(
                "Unhandled exception",
                path=request.url.path,
                method=request.method,
                error_type=type(e).__name__,
                error_message=str(e),
                traceback=traceback.format_exc(),
            )
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "Internal server error",
                    "correlation_id": correlation_id,
                    "message": "An unexpected error occurred. Please try again.",
                },
                headers={CORRELATION_HEADER: correlation_id},
            )

        finally:
            clear_context()


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    logger.info("Rejected invalid input", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": exc.message})


async def not_found_error_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": exc.message})


async def transport_error_handler(request: Request, exc: TransportError) -> JSONResponse:
    logger.error(
        "Model endpoint unavailable",
        path=request.url.path,
        provider=exc.provider,
        error=exc.message,
    )
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={
            "error": "Analysis service unavailable",
            "message": "The analysis model could not be reached. Please try again later.",
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(NotFoundError, not_found_error_handler)
    app.add_exception_handler(TransportError, transport_error_handler)
