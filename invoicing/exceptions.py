"""
Error taxonomy for the invoicing service.

Every error carries a stable ``code`` and an HTTP ``status_code``; the
handlers registered in ``invoicing.main`` render them as
``{"error": {"code": ..., "message": ...}}``.
"""

from typing import Optional


class InvoicingError(Exception):
    code = "INVOICING_ERROR"
    status_code = 500

    def __init__(self, message: str, *, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        body = {"code": self.code, "message": self.message}
        if self.field:
            body["field"] = self.field
        return body


class ValidationError(InvoicingError):
    """Client-detectable problem; raised before any collaborator call."""

    code = "VALIDATION_ERROR"
    status_code = 422


class PersistenceError(InvoicingError):
    """The database rejected a read or write."""

    code = "PERSISTENCE_ERROR"
    status_code = 502


class InvoiceNotFound(PersistenceError):
    code = "INVOICE_NOT_FOUND"
    status_code = 404


class SubmissionError(InvoicingError):
    """Wraps a collaborator failure raised while submitting a draft."""

    code = "SUBMISSION_FAILED"
    status_code = 502


class PaymentError(InvoicingError):
    code = "PAYMENT_FAILED"
    status_code = 502


class UploadError(InvoicingError):
    code = "UPLOAD_REJECTED"
    status_code = 400


class UploadTooLarge(UploadError):
    code = "UPLOAD_TOO_LARGE"
    status_code = 413


class AuthError(InvoicingError):
    code = "AUTH_INVALID_CREDENTIALS"
    status_code = 401


class ProfileNotFound(PersistenceError):
    code = "PROFILE_NOT_FOUND"
    status_code = 404
