"""
Error envelope and exception handlers
"""
import logging
from typing import Any, Optional, Dict
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .exceptions import BraveThingsException, RateLimitException

logger = logging.getLogger(__name__)


def error_response(error: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Helper function to create error response"""
    response = {"success": False, "error": error}
    if details:
        response["details"] = details
    return response


async def brave_things_exception_handler(request: Request, exc: BraveThingsException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message} {exc.details}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")

    headers = None
    if isinstance(exc, RateLimitException):
        retry_after = max(1, int(exc.details.get("retry_after", 1)))
        headers = {"Retry-After": str(retry_after)}
    elif exc.status_code == 401:
        headers = {"WWW-Authenticate": "Bearer"}

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.message, exc.details),
        headers=headers,
    )


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Flatten FastAPI's 422 payload into field -> message pairs"""
    fields: Dict[str, str] = {}
    for err in exc.errors():
        location = [str(part) for part in err.get("loc", ()) if part != "body"]
        fields[".".join(location) or "body"] = err.get("msg", "Invalid value")
    return JSONResponse(
        status_code=400,
        content=error_response("Invalid request", {"fields": fields}),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BraveThingsException, brave_things_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
