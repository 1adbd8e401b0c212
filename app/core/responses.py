"""
JSON envelope helpers and global exception handlers.

Every route answers with ``{"success": true, "data": ...}`` or
``{"success": false, "error": "..."}``. Services report failures as
result dicts; ``unwrap`` turns a failed result into a ``ServiceError``
which the handlers below render with the matching status code.
"""
import logging
import math
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    "validation": status.HTTP_400_BAD_REQUEST,
    "invalid_state": status.HTTP_400_BAD_REQUEST,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "not_found": status.HTTP_404_NOT_FOUND,
    "conflict": status.HTTP_409_CONFLICT,
    "error": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class ServiceError(Exception):
    """A failed service result surfaced at the route boundary."""

    def __init__(self, message: str, error_type: str = "invalid_state", details: Optional[List[Dict]] = None):
        self.message = message
        self.error_type = error_type
        self.status_code = ERROR_STATUS_CODES.get(error_type, status.HTTP_400_BAD_REQUEST)
        self.details = details
        super().__init__(message)


def failure(error: str, error_type: str = "invalid_state") -> Dict:
    """Build a failed service result."""
    return {"success": False, "error": error, "error_type": error_type}


def unwrap(result: Dict, key: Optional[str] = None) -> Any:
    """Return ``result[key]`` or raise ``ServiceError`` for a failed result."""
    if not result.get("success"):
        raise ServiceError(result.get("error", "Operation failed"), result.get("error_type", "invalid_state"))
    return result.get(key) if key else None


def success_response(data: Any = None, **extra) -> Dict:
    body = {"success": True, "data": data}
    body.update(extra)
    return body


def paginated_response(data: List[Any], page: int, page_size: int, total: int) -> Dict:
    return {
        "success": True,
        "data": data,
        "meta": {
            "page": page,
            "page_size": page_size,
            "total": total,
            "total_pages": math.ceil(total / page_size) if page_size else 0,
        },
    }


def error_response(message: str, status_code: int = 400, details: Any = None, headers: Optional[Dict] = None) -> JSONResponse:
    body = {"success": False, "error": message}
    if details is not None:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body, headers=headers)


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path} failed: {exc.error_type} - {exc.message}")
    return error_response(exc.message, exc.status_code, exc.details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return error_response(message, exc.status_code, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": list(err.get("loc", [])), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return error_response("Validation failed", status.HTTP_400_BAD_REQUEST, details)


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning(f"Integrity error on {request.url.path}: {exc.orig}")
    return error_response("A record with this value already exists", status.HTTP_409_CONFLICT)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response("An unexpected error occurred", status.HTTP_500_INTERNAL_SERVER_ERROR)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
