"""Attachment lifecycle errors.

Every failure carries a stable ``error`` kind and a message that is safe to show
to clients (no paths, no SQL). ``error_handlers`` renders them as ErrorResponse.
"""

from __future__ import annotations

from typing import ClassVar


class AttachmentError(Exception):
    error: ClassVar[str] = "attachment_error"
    status_code: ClassVar[int] = 400
    default_message: ClassVar[str] = "attachment operation failed"

    def __init__(self, message: str | None = None, *, details: object | None = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class NotFoundError(AttachmentError):
    # Also used when the caller does not own the entity, so existence is not leaked.
    error = "not_found"
    status_code = 404
    default_message = "note not found"


class NotFoundOrForbiddenError(AttachmentError):
    error = "not_found_or_forbidden"
    status_code = 404
    default_message = "attachment not found"


class UnsupportedTypeError(AttachmentError):
    error = "unsupported_type"
    status_code = 415
    default_message = "unsupported file type"


class TooLargeError(AttachmentError):
    error = "too_large"
    status_code = 413
    default_message = "attachment too large"


class QuotaExceededError(AttachmentError):
    error = "quota_exceeded"
    status_code = 507
    default_message = "storage quota exceeded"


class StorageWriteFailedError(AttachmentError):
    error = "storage_write_failed"
    status_code = 502
    default_message = "failed to store attachment"


class PersistFailedError(AttachmentError):
    error = "persist_failed"
    status_code = 500
    default_message = "failed to save attachment"


class InvalidStateError(AttachmentError):
    error = "invalid_state"
    status_code = 409
    default_message = "attachment is not in the required state"
