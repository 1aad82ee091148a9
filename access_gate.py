"""
Access Gate: decides whether a share may deliver its content right now.

Expiry and exhaustion are checked before the password, so a dead link
never prompts for one.
"""

import secrets
from enum import Enum
from typing import Optional

from errors import DenyReason
from share_codec import ShareRecord


class AccessDecision(str, Enum):
    ALLOW = "allow"
    EXPIRED = DenyReason.EXPIRED.value
    EXHAUSTED = DenyReason.EXHAUSTED.value
    PASSWORD_REQUIRED = DenyReason.PASSWORD_REQUIRED.value
    PASSWORD_REJECTED = DenyReason.PASSWORD_REJECTED.value

    @property
    def deny_reason(self) -> Optional[DenyReason]:
        if self is AccessDecision.ALLOW:
            return None
        return DenyReason(self.value)


def is_expired(record: ShareRecord, now_ms: int) -> bool:
    return record.expire_at is not None and now_ms > record.expire_at


def is_exhausted(record: ShareRecord) -> bool:
    return record.max_views is not None and record.views >= record.max_views


def evaluate(record: ShareRecord, now_ms: int, supplied_password: Optional[str] = None) -> AccessDecision:
    """Evaluate a record against the current time and submitted password"""
    if is_expired(record, now_ms):
        return AccessDecision.EXPIRED
    if is_exhausted(record):
        return AccessDecision.EXHAUSTED
    if record.password is not None:
        if not supplied_password:
            return AccessDecision.PASSWORD_REQUIRED
        if not secrets.compare_digest(supplied_password.encode(), record.password.encode()):
            return AccessDecision.PASSWORD_REJECTED
    return AccessDecision.ALLOW
