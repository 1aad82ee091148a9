"""
Administrator sessions stored as `session:{token}` keys with a TTL.
"""

import logging
import secrets
import uuid
from typing import Optional

from fastapi import Request

from id_allocator import SESSION_PREFIX
from kv_store import KVStore

logger = logging.getLogger("cliplink")

SESSION_COOKIE = "session_id"


class SessionManager:
    """Logs the single administrator in and out"""

    def __init__(self, store: KVStore, username: str, password: str, ttl_seconds: int = 86400):
        self.store = store
        self.username = username
        self.password = password
        self.ttl_seconds = ttl_seconds

    def check_credentials(self, username: str, password: str) -> bool:
        """Constant-time comparison against the configured credentials"""
        if not self.password:
            return False
        user_ok = secrets.compare_digest((username or "").encode(), (self.username or "").encode())
        password_ok = secrets.compare_digest((password or "").encode(), self.password.encode())
        return user_ok and password_ok

    def login(self, username: str, password: str) -> Optional[str]:
        """Return a new session token, or None if the credentials are wrong"""
        if not self.check_credentials(username, password):
            return None
        token = str(uuid.uuid4())
        self.store.put(f"{SESSION_PREFIX}{token}", "true", ttl_seconds=self.ttl_seconds)
        return token

    def logout(self, token: Optional[str]) -> None:
        if token:
            self.store.delete(f"{SESSION_PREFIX}{token}")
            logger.info("Session ended")

    def is_valid(self, token: Optional[str]) -> bool:
        if not token:
            return False
        return self.store.get(f"{SESSION_PREFIX}{token}") == "true"

    def is_authenticated(self, request: Request) -> bool:
        return self.is_valid(request.cookies.get(SESSION_COOKIE))
