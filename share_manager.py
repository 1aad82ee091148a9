"""
Share Lifecycle Manager.

Creates, consumes, lists, edits and deletes share records. All state lives
in the key-value store; the manager holds no per-request memory.

Consume is a plain read-modify-write of the view counter. Two concurrent
views of the same share may both read N and both write N + 1, so the
counter can undercount under contention. Records are never written with a
store TTL and are never deleted on expiry or exhaustion.
"""

import logging
import time
from typing import Callable, Iterable, List, Optional, Tuple

import access_gate
from access_gate import AccessDecision
from errors import (
    AccessDeniedError,
    EmptyContentError,
    ShareNotFoundError,
    ShareParseError,
    StoreError,
)
from id_allocator import (
    CLIPBOARD_KEY,
    RESERVED_NAMES,
    generate_random_id,
    is_reserved,
    validate_custom_id,
)
from kv_store import KVStore
from share_codec import ShareRecord, decode, encode

logger = logging.getLogger("cliplink")

MINUTE_MS = 60 * 1000
RANDOM_ID_ATTEMPTS = 3


def now_ms() -> int:
    return int(time.time() * 1000)


def normalize_max_views(max_views: Optional[int]) -> Optional[int]:
    """0, negative and None all mean unlimited"""
    if not max_views or max_views <= 0:
        return None
    return int(max_views)


def expire_at_from_minutes(valid_minutes: Optional[int], now: int) -> Optional[int]:
    if not valid_minutes or valid_minutes <= 0:
        return None
    return now + int(valid_minutes) * MINUTE_MS


class ShareManager:
    """Owns every policy decision about share records"""

    def __init__(self, store: KVStore, clock: Callable[[], int] = now_ms,
                 reserved_names: Iterable[str] = RESERVED_NAMES, max_custom_id_length: int = 64):
        self.store = store
        self.clock = clock
        self.reserved_names = frozenset(reserved_names)
        self.max_custom_id_length = max_custom_id_length

    # ── Create ────────────────────────────────────────────────

    def create(self, max_views: Optional[int] = None, valid_minutes: Optional[int] = None,
               custom_id: Optional[str] = None, password: Optional[str] = None) -> ShareRecord:
        """
        Snapshot the current clipboard into a new share record.

        Raises:
            EmptyContentError: the clipboard is empty
            InvalidIdError / IdConflictError: custom_id rejected
        """
        content = self.store.get(CLIPBOARD_KEY)
        if not content:
            raise EmptyContentError()

        if custom_id is not None:
            share_id = validate_custom_id(custom_id, self.store, self.reserved_names,
                                          max_length=self.max_custom_id_length)
        else:
            share_id = self._allocate_random_id()

        now = self.clock()
        record = ShareRecord(
            id=share_id,
            content=content,
            max_views=normalize_max_views(max_views),
            views=0,
            expire_at=expire_at_from_minutes(valid_minutes, now),
            password=password or None,
            created_at=now,
        )
        self._save(record)
        logger.info(
            f"Created share {share_id} (max_views={record.max_views}, expire_at={record.expire_at}, "
            f"password={'yes' if record.password else 'no'}, {len(content)} bytes)"
        )
        return record

    def _allocate_random_id(self) -> str:
        for _ in range(RANDOM_ID_ATTEMPTS):
            share_id = generate_random_id()
            if not self.store.exists(share_id):
                return share_id
            logger.warning(f"Random share id collision on {share_id}, retrying")
        raise StoreError("Could not allocate a unique share id")

    # ── Consume ───────────────────────────────────────────────

    def check(self, share_id: str, supplied_password: Optional[str] = None) -> Tuple[ShareRecord, AccessDecision]:
        """Evaluate the Access Gate without consuming a view"""
        record = self.get(share_id)
        return record, access_gate.evaluate(record, self.clock(), supplied_password)

    def consume(self, share_id: str, supplied_password: Optional[str] = None) -> str:
        """
        Deliver a share's content and count the view.

        Nothing is written when access is denied. If the counter write fails
        the content is not returned.

        Raises:
            ShareNotFoundError: no such share, or its record is corrupt
            AccessDeniedError: expired, exhausted, or password missing/wrong
        """
        record, decision = self.check(share_id, supplied_password)
        if decision is not AccessDecision.ALLOW:
            logger.warning(f"Denied view of share {share_id}: {decision.value}")
            raise AccessDeniedError(decision.deny_reason)

        record.views += 1
        self._save(record)
        logger.info(f"Served share {share_id} (views={record.views}, max_views={record.max_views})")
        return record.content

    # ── Read / List ───────────────────────────────────────────

    def get(self, share_id: str) -> ShareRecord:
        if is_reserved(share_id, self.reserved_names):
            raise ShareNotFoundError()
        raw = self.store.get(share_id)
        if raw is None:
            raise ShareNotFoundError()
        try:
            return decode(share_id, raw)
        except ShareParseError:
            logger.warning(f"Share {share_id} has a corrupt record, treating as not found")
            raise ShareNotFoundError()

    def list(self) -> List[ShareRecord]:
        """Every decodable share record, including expired and exhausted ones"""
        records = []
        for key in self.store.list_keys():
            if is_reserved(key, self.reserved_names):
                continue
            raw = self.store.get(key)
            if raw is None:
                continue
            try:
                records.append(decode(key, raw))
            except ShareParseError:
                logger.warning(f"Skipping corrupt share record {key}")
        return records

    # ── Edit / Delete ─────────────────────────────────────────

    def edit(self, share_id: str, max_views: Optional[int] = None,
             valid_minutes: Optional[int] = None) -> ShareRecord:
        """
        Replace a share's access policy.

        views restarts at 0 when the effective max_views or expire_at
        changes. content, password and created_at are left as they are.
        """
        record = self.get(share_id)
        new_max_views = normalize_max_views(max_views)
        new_expire_at = expire_at_from_minutes(valid_minutes, self.clock())

        policy_changed = new_max_views != record.max_views or new_expire_at != record.expire_at
        record.max_views = new_max_views
        record.expire_at = new_expire_at
        if policy_changed:
            record.views = 0

        self._save(record)
        logger.info(
            f"Edited share {share_id} (max_views={new_max_views}, expire_at={new_expire_at}, "
            f"views {'reset' if policy_changed else 'kept'})"
        )
        return record

    def delete(self, share_id: str) -> None:
        """Idempotent; reserved keys are never touched"""
        if is_reserved(share_id, self.reserved_names):
            logger.warning(f"Refused to delete reserved key via share API: {share_id}")
            return
        self.store.delete(share_id)
        logger.info(f"Deleted share {share_id}")

    def _save(self, record: ShareRecord) -> None:
        # No TTL: terminal records stay inspectable until deleted
        self.store.put(record.id, encode(record), ttl_seconds=None)
