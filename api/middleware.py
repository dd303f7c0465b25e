"""Request logging and the JSON shape of errors that escape a route."""
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_503_SERVICE_UNAVAILABLE,
)

from constants import AUTH_USER_HEADER
from exceptions import (
    AccessDeniedError,
    LoadNotFoundError,
    LoadWorkflowException,
    NotAuthenticatedError,
    ProfileNotFoundError,
    TripNotFoundError,
    UpstreamFailureError,
)
from logging_config import get_logger, bind_context, clear_context

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# First match wins; anything else from the domain is a bad request
STATUS_BY_EXCEPTION = [
    (NotAuthenticatedError, HTTP_401_UNAUTHORIZED),
    (AccessDeniedError, HTTP_403_FORBIDDEN),
    (ProfileNotFoundError, HTTP_404_NOT_FOUND),
    (LoadNotFoundError, HTTP_404_NOT_FOUND),
    (TripNotFoundError, HTTP_404_NOT_FOUND),
    (UpstreamFailureError, HTTP_503_SERVICE_UNAVAILABLE),
]


def status_code_for(exc: LoadWorkflowException) -> int:
    return next(
        (status_code for exc_type, status_code in STATUS_BY_EXCEPTION if isinstance(exc, exc_type)),
        HTTP_400_BAD_REQUEST,
    )


def _error_response(status_code: int, error: str, error_type: str, retryable: bool = False) -> JSONResponse:
    """Same keys as a failed workflow ``Result`` so clients parse one shape."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": error,
            "error_type": error_type,
            "retryable": retryable,
        },
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Bind request id, route and calling driver to every log line of the request.

    The id is echoed back in ``X-Request-ID`` so a driver's bug report can be
    matched to the server log.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())
        bind_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            auth_user_id=request.headers.get(AUTH_USER_HEADER),
        )
        started = time.perf_counter()
        logger.info("Request started")

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                error_type=type(e).__name__,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
                exc_info=True,
            )
            raise
        else:
            response.headers[REQUEST_ID_HEADER] = request_id
            logger.info(
                "Request completed",
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            return response
        finally:
            clear_context()


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Convert exceptions raised outside a workflow operation into JSON.

    Operations report their own failures inside a 200 ``Result``; what reaches
    here comes from dependency resolution (unknown caller, missing profile)
    or from a bug.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except LoadWorkflowException as e:
            status_code = status_code_for(e)
            logger.warning(
                "Request rejected",
                error=str(e),
                error_type=type(e).__name__,
                status_code=status_code,
            )
            return _error_response(status_code, str(e), type(e).__name__, e.retryable)
        except Exception as e:
            logger.error("Unhandled exception", error=str(e), error_type=type(e).__name__, exc_info=True)
            return _error_response(
                HTTP_500_INTERNAL_SERVER_ERROR,
                "An unexpected error occurred",
                "InternalServerError",
            )


def setup_middleware(app) -> None:
    # Added last runs outermost: logging wraps error handling
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    logger.info("Middleware configured")
