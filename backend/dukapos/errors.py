# Overview: Typed failures raised by the service layer and translated by routes.

"""
Error taxonomy

Every failure a service can report is one of the kinds below. Routes map
them to HTTP responses via `status_code` and `to_dict()`; services never
return partial results on error.
"""

from __future__ import annotations


class PosError(Exception):
    """Base class for all service-layer failures."""

    code = "error"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(PosError, ValueError):
    """Missing or malformed input (400)."""

    code = "validation_error"
    status_code = 400


class InsufficientStock(PosError):
    """A stock change would take a product below zero (409)."""

    code = "insufficient_stock"
    status_code = 409


class InvalidPaymentAmount(PosError):
    """Payment is non-positive or larger than the outstanding balance (400)."""

    code = "invalid_payment_amount"
    status_code = 400


class NotFound(PosError):
    """Referenced row is missing or belongs to another tenant (404)."""

    code = "not_found"
    status_code = 404


class AccessDenied(PosError):
    """Role or tenant does not permit the operation (403)."""

    code = "access_denied"
    status_code = 403


class StorageError(PosError):
    """Opaque persistence failure (503)."""

    code = "storage_error"
    status_code = 503
