"""
Error taxonomy for cliplink.

Each error carries the HTTP status and the short message shown to clients.
"""

from enum import Enum
from typing import Optional


class ClipLinkError(Exception):
    """Base class for all errors surfaced to clients"""

    status_code = 500
    message = "Internal error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class EmptyContentError(ClipLinkError):
    status_code = 400
    message = "Clipboard is empty"


class InvalidIdError(ClipLinkError):
    status_code = 400
    message = "Invalid share id"


class IdConflictError(ClipLinkError):
    status_code = 409
    message = "Share id already in use"


class ShareNotFoundError(ClipLinkError):
    status_code = 404
    message = "Share link not found"


class ShareParseError(ClipLinkError):
    """Stored share record could not be decoded"""

    status_code = 404
    message = "Share link not found"


class UnauthorizedError(ClipLinkError):
    status_code = 401
    message = "Unauthorized"


class StoreError(ClipLinkError):
    """Key-value backend failed; details stay in the server log"""

    status_code = 500
    message = "Internal error"


class DenyReason(str, Enum):
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"
    PASSWORD_REQUIRED = "password_required"
    PASSWORD_REJECTED = "password_rejected"


_DENY_STATUS = {
    DenyReason.EXPIRED: (403, "Share link has expired"),
    DenyReason.EXHAUSTED: (403, "Share link has reached its view limit"),
    DenyReason.PASSWORD_REQUIRED: (401, "Password required"),
    DenyReason.PASSWORD_REJECTED: (401, "Incorrect password"),
}


class AccessDeniedError(ClipLinkError):
    """Access Gate refused delivery of a share's content"""

    def __init__(self, reason: DenyReason):
        self.reason = reason
        self.status_code, message = _DENY_STATUS[reason]
        super().__init__(message)
