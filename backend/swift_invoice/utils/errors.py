"""Centralized error codes, response helpers and domain exceptions.

Services raise `DomainError` subclasses; routers translate them into HTTP errors
and the global handlers in `main` render the standardized error envelope.
"""
from __future__ import annotations
from fastapi import HTTPException
from typing import Any, Dict
import time

ERROR_CODES = {
    "validation": "VALIDATION_ERROR",
    "not_found": "NOT_FOUND",
    "invoice_not_found": "INVOICE_NOT_FOUND",
    "not_authorized": "NOT_AUTHORIZED",
    "auth_invalid": "AUTH_INVALID_CREDENTIALS",
    "auth_expired": "AUTH_TOKEN_EXPIRED",
    "auth_conflict": "AUTH_EMAIL_TAKEN",
    "db": "DB_ERROR",
    "render": "PDF_RENDER_ERROR",
    "internal": "INTERNAL_SERVER_ERROR",
}


def error_payload(code: str, message: str, details: Any | None = None, path: str | None = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "status": "error",
        "error": {
            "code": code,
            "message": message,
        },
        "timestamp": time.time(),
    }
    if details is not None:
        payload["error"]["details"] = details
    if path:
        payload["path"] = path
    return payload


def http_error(status_code: int, code: str, message: str, headers: Dict[str, str] | None = None) -> HTTPException:
    """Build an HTTPException carrying a standardized `code` for the global handler."""
    exc = HTTPException(status_code=status_code, detail=message, headers=headers)
    setattr(exc, "code", code)
    return exc


class DomainError(Exception):
    """Base domain error storing standardized fields."""

    status_code = 500
    default_code = ERROR_CODES["internal"]

    def __init__(self, message: str, code: str | None = None, details: Any | None = None):  # noqa: D401
        super().__init__(message)
        self.code = code or self.default_code
        self.message = message
        self.details = details

    def to_http(self) -> HTTPException:
        return http_error(self.status_code, self.code, self.message)


class InvoiceValidationError(DomainError):
    """Raised when an invoice payload fails the non-draft content rules."""
    status_code = 422
    default_code = ERROR_CODES["validation"]


class InvoiceNotFound(DomainError):
    """Raised when an invoice cannot be found."""
    status_code = 404
    default_code = ERROR_CODES["invoice_not_found"]

    def __init__(self, message: str = "Invoice not found", **kwargs: Any):
        super().__init__(message, **kwargs)


class NotAuthorized(DomainError):
    """Raised when the caller does not own the target invoice."""
    status_code = 401
    default_code = ERROR_CODES["not_authorized"]

    def __init__(self, message: str = "Not authorized", **kwargs: Any):
        super().__init__(message, **kwargs)


class PersistenceError(DomainError):
    """Unexpected store failure; message is passed through to the caller."""
    status_code = 500
    default_code = ERROR_CODES["db"]


class RenderError(DomainError):
    """PDF rendering failure; message is passed through to the caller."""
    status_code = 500
    default_code = ERROR_CODES["render"]


__all__ = [
    "ERROR_CODES",
    "error_payload",
    "http_error",
    "DomainError",
    "InvoiceValidationError",
    "InvoiceNotFound",
    "NotAuthorized",
    "PersistenceError",
    "RenderError",
]
