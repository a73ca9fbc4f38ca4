"""
Error normalization and handlers.

Every handled error renders as
    {"error": {"code", "message", "request_id"}, "detail": message}
and is logged through log_event with whatever billing record the raiser
attached (subscription, condominium, invoice).
"""

import builtins
import logging
from typing import Optional
from uuid import uuid4

from fastapi import HTTPException
from fastapi.responses import JSONResponse
from starlette.requests import Request

from condoadmin.core.logging import get_request_id, log_event


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
        subscription_id: Optional[str] = None,
        condominium_id: Optional[str] = None,
        invoice_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.request_id = request_id
        self.subscription_id = subscription_id
        self.condominium_id = condominium_id
        self.invoice_id = invoice_id


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400


class NotFoundError(AppError, ValueError):
    code = "not_found"
    status_code = 404


class PermissionError(AppError, builtins.PermissionError):
    code = "forbidden"
    status_code = 403


class ConflictError(AppError):
    """Raised when a transition is not allowed from the record's current state."""
    code = "conflict"
    status_code = 409


def _extract_request_id(request: Request, fallback: Optional[str] = None) -> str:
    return (
        getattr(request.state, "request_id", None)
        or get_request_id()
        or fallback
        or str(uuid4())
    )


def _error_payload(code: str, message: str, request_id: str) -> dict:
    return {
        "error": {"code": code, "message": message, "request_id": request_id},
        "detail": message,
    }


def _json_error(status_code: int, code: str, message: str, rid: str) -> JSONResponse:
    response = JSONResponse(status_code=status_code, content=_error_payload(code, message, rid))
    response.headers["x-request-id"] = rid
    return response


async def app_error_handler(request: Request, exc: AppError):
    rid = exc.request_id or _extract_request_id(request)
    log_event(
        "error" if exc.status_code >= 500 else "warning",
        "app.error",
        request_id=rid,
        subscription_id=exc.subscription_id or request.path_params.get("subscription_id"),
        condominium_id=exc.condominium_id or request.path_params.get("condominium_id"),
        invoice_id=exc.invoice_id,
        error_code=exc.code,
        extra={"error_message": exc.message, "status": exc.status_code, "path": request.url.path},
    )
    return _json_error(exc.status_code, exc.code, exc.message, rid)


async def http_error_handler(request: Request, exc: HTTPException):
    rid = _extract_request_id(request)
    code = "not_found" if exc.status_code == 404 else "http_error"
    message = exc.detail if exc.detail else "HTTP error"
    log_event(
        "warning",
        "http.error",
        request_id=rid,
        subscription_id=request.path_params.get("subscription_id"),
        error_code=code,
        extra={"status": exc.status_code, "path": request.url.path},
    )
    return _json_error(exc.status_code, code, message, rid)


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _extract_request_id(request)
    logging.getLogger("condoadmin").error(
        "unhandled.exception",
        exc_info=True,
        extra={
            "request_id": rid,
            "subscription_id": request.path_params.get("subscription_id"),
            "error_code": "internal_error",
        },
    )
    return _json_error(500, "internal_error", "Unexpected error", rid)
