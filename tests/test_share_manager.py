"""Tests for the share lifecycle: create, consume, list, edit, delete.

Validates:
  - views count successful deliveries only and never decrease.
  - exhausted and expired shares stay terminal and stay in the store.
  - edits reset views exactly when the effective policy changes.
  - custom ids never overwrite an existing share.
"""

from __future__ import annotations

import json

import pytest

from errors import (
    AccessDeniedError,
    DenyReason,
    EmptyContentError,
    IdConflictError,
    InvalidIdError,
    ShareNotFoundError,
    StoreError,
)
from kv_store import MemoryStore
from share_manager import MINUTE_MS, ShareManager


def _views(manager, share_id):
    return manager.get(share_id).views


def _denied(manager, share_id, password=None) -> DenyReason:
    with pytest.raises(AccessDeniedError) as exc_info:
        manager.consume(share_id, password)
    return exc_info.value.reason


# =====================================================================
# Create
# =====================================================================


class TestCreate:

    def test_empty_clipboard_rejected(self, manager):
        with pytest.raises(EmptyContentError):
            manager.create()

    def test_snapshot_of_clipboard(self, manager, clipboard, clock):
        clipboard("hello")

        record = manager.create(max_views=2)
        clipboard("changed later")

        assert manager.get(record.id).content == "hello"
        assert record.views == 0
        assert record.created_at == clock.now

    def test_valid_minutes_sets_deadline(self, manager, clipboard, clock):
        clipboard("x")
        record = manager.create(valid_minutes=10)
        assert record.expire_at == clock.now + 10 * MINUTE_MS

    @pytest.mark.parametrize("valid_minutes", [None, 0, -5])
    def test_non_positive_minutes_never_expire(self, manager, clipboard, valid_minutes):
        clipboard("x")
        assert manager.create(valid_minutes=valid_minutes).expire_at is None

    @pytest.mark.parametrize("max_views", [None, 0])
    def test_unlimited_representations(self, manager, clipboard, max_views):
        clipboard("x")
        assert manager.create(max_views=max_views).max_views is None

    def test_written_without_store_ttl(self, clipboard, clock):
        calls = []

        class RecordingStore(MemoryStore):
            def put(self, key, value, ttl_seconds=None):
                calls.append((key, ttl_seconds))
                super().put(key, value, ttl_seconds)

        store = RecordingStore()
        store.put("clipboard", "x")
        calls.clear()
        manager = ShareManager(store, clock=clock)

        record = manager.create(valid_minutes=1, max_views=1)
        manager.consume(record.id)
        manager.edit(record.id, valid_minutes=5)

        assert calls and all(ttl is None for _, ttl in calls)

    def test_custom_id(self, manager, clipboard):
        clipboard("x")
        assert manager.create(custom_id="note1").id == "note1"

    def test_custom_id_conflict_keeps_original(self, manager, clipboard):
        clipboard("x")
        manager.create(custom_id="note1")
        clipboard("y")

        with pytest.raises(IdConflictError):
            manager.create(custom_id="note1")

        assert manager.consume("note1") == "x"

    def test_reserved_custom_id_rejected(self, manager, clipboard):
        clipboard("x")
        with pytest.raises(InvalidIdError):
            manager.create(custom_id="clipboard")
        with pytest.raises(InvalidIdError):
            manager.create(custom_id="session:mine")

    def test_empty_password_means_unprotected(self, manager, clipboard):
        clipboard("x")
        record = manager.create(password="")
        assert record.password is None
        assert manager.consume(record.id) == "x"

    def test_random_id_collision_retries(self, manager, clipboard, monkeypatch):
        clipboard("x")
        manager.store.put("taken", '{"content": "old"}')
        ids = iter(["taken", "fresh"])
        monkeypatch.setattr("share_manager.generate_random_id", lambda: next(ids))

        assert manager.create().id == "fresh"
        assert manager.consume("taken") == "old"


# =====================================================================
# Consume
# =====================================================================


class TestConsume:

    def test_missing_share(self, manager):
        with pytest.raises(ShareNotFoundError):
            manager.consume("nope")

    def test_corrupt_record_is_not_found(self, manager, store):
        store.put("broken", "{not json")
        with pytest.raises(ShareNotFoundError):
            manager.consume("broken")

    def test_reserved_keys_are_not_shares(self, manager, clipboard, store):
        clipboard("private")
        store.put("session:abc", "true")
        with pytest.raises(ShareNotFoundError):
            manager.consume("clipboard")
        with pytest.raises(ShareNotFoundError):
            manager.consume("session:abc")

    def test_views_count_each_delivery(self, manager, clipboard):
        clipboard("x")
        record = manager.create()

        for expected in range(1, 6):
            assert manager.consume(record.id) == "x"
            assert _views(manager, record.id) == expected

    def test_max_views_scenario(self, manager, clipboard):
        clipboard("hello")
        share_id = manager.create(max_views=2).id

        assert manager.consume(share_id) == "hello"
        assert _views(manager, share_id) == 1
        assert manager.consume(share_id) == "hello"
        assert _views(manager, share_id) == 2
        assert _denied(manager, share_id) is DenyReason.EXHAUSTED

    def test_exhaustion_is_terminal_and_does_not_count(self, manager, clipboard):
        clipboard("x")
        share_id = manager.create(max_views=1).id
        manager.consume(share_id)

        for _ in range(5):
            assert _denied(manager, share_id) is DenyReason.EXHAUSTED
        assert _views(manager, share_id) == 1

    def test_expiry_is_terminal(self, manager, clipboard, clock):
        clipboard("x")
        share_id = manager.create(valid_minutes=5, max_views=100).id
        clock.advance(minutes=5, ms=1)

        for _ in range(3):
            assert _denied(manager, share_id) is DenyReason.EXPIRED
        assert _views(manager, share_id) == 0

    def test_terminal_shares_are_kept(self, manager, clipboard, clock, store):
        clipboard("x")
        exhausted = manager.create(max_views=1).id
        expired = manager.create(valid_minutes=1).id
        manager.consume(exhausted)
        _denied(manager, exhausted)
        clock.advance(minutes=2)
        _denied(manager, expired)

        assert store.exists(exhausted)
        assert store.exists(expired)
        assert {r.id for r in manager.list()} == {exhausted, expired}

    def test_password_scenario(self, manager, clipboard):
        clipboard("secret")
        share_id = manager.create(password="p1").id

        assert _denied(manager, share_id) is DenyReason.PASSWORD_REQUIRED
        assert _denied(manager, share_id, "wrong") is DenyReason.PASSWORD_REJECTED
        assert _views(manager, share_id) == 0
        assert manager.consume(share_id, "p1") == "secret"
        assert _views(manager, share_id) == 1

    def test_expired_protected_share_reports_expiry(self, manager, clipboard, clock):
        clipboard("x")
        share_id = manager.create(password="p1", valid_minutes=1).id
        clock.advance(minutes=2)

        assert _denied(manager, share_id) is DenyReason.EXPIRED
        assert _denied(manager, share_id, "p1") is DenyReason.EXPIRED

    def test_failed_counter_write_withholds_content(self, clipboard, clock):
        class FlakyStore(MemoryStore):
            fail_puts = False

            def put(self, key, value, ttl_seconds=None):
                if self.fail_puts:
                    raise StoreError()
                super().put(key, value, ttl_seconds)

        store = FlakyStore()
        store.put("clipboard", "x")
        manager = ShareManager(store, clock=clock)
        share_id = manager.create(max_views=3).id

        store.fail_puts = True
        with pytest.raises(StoreError):
            manager.consume(share_id)
        store.fail_puts = False

        assert _views(manager, share_id) == 0


# =====================================================================
# List
# =====================================================================


class TestList:

    def test_lists_only_share_records(self, manager, clipboard, store):
        clipboard("x")
        store.put("session:abc", "true", ttl_seconds=60)
        a = manager.create().id
        b = manager.create(custom_id="note1").id

        assert sorted(r.id for r in manager.list()) == sorted([a, b])

    def test_corrupt_entries_are_skipped(self, manager, clipboard, store):
        clipboard("x")
        good = manager.create().id
        store.put("garbage", "][")
        store.put("half", json.dumps({"views": 3}))

        assert [r.id for r in manager.list()] == [good]

    def test_includes_password_for_administrator(self, manager, clipboard):
        clipboard("x")
        manager.create(password="p1")
        assert manager.list()[0].password == "p1"


# =====================================================================
# Edit
# =====================================================================


class TestEdit:

    def test_missing_share(self, manager):
        with pytest.raises(ShareNotFoundError):
            manager.edit("nope", max_views=3)

    def test_same_policy_keeps_views(self, manager, clipboard):
        clipboard("x")
        share_id = manager.create(max_views=5).id
        manager.consume(share_id)
        manager.consume(share_id)

        manager.edit(share_id, max_views=5)

        assert _views(manager, share_id) == 2

    def test_same_unlimited_policy_keeps_views(self, manager, clipboard):
        clipboard("x")
        share_id = manager.create().id
        manager.consume(share_id)

        manager.edit(share_id, max_views=0, valid_minutes=None)

        assert _views(manager, share_id) == 1

    def test_same_deadline_keeps_views(self, manager, clipboard):
        clipboard("x")
        share_id = manager.create(valid_minutes=10).id
        manager.consume(share_id)

        manager.edit(share_id, valid_minutes=10)

        assert _views(manager, share_id) == 1

    def test_new_max_views_resets_views(self, manager, clipboard):
        clipboard("x")
        share_id = manager.create(max_views=2).id
        manager.consume(share_id)
        manager.consume(share_id)
        assert _denied(manager, share_id) is DenyReason.EXHAUSTED

        manager.edit(share_id, max_views=3)

        assert _views(manager, share_id) == 0
        assert manager.consume(share_id) == "x"

    def test_new_deadline_resets_views_and_revives(self, manager, clipboard, clock):
        clipboard("x")
        share_id = manager.create(valid_minutes=1).id
        manager.consume(share_id)
        clock.advance(minutes=2)
        assert _denied(manager, share_id) is DenyReason.EXPIRED

        record = manager.edit(share_id, valid_minutes=30)

        assert record.expire_at == clock.now + 30 * MINUTE_MS
        assert record.views == 0
        assert manager.consume(share_id) == "x"

    def test_removing_limits_makes_unlimited(self, manager, clipboard, clock):
        clipboard("x")
        share_id = manager.create(max_views=1, valid_minutes=1).id

        record = manager.edit(share_id)

        assert record.max_views is None
        assert record.expire_at is None

    def test_content_password_and_created_at_untouched(self, manager, clipboard, clock):
        clipboard("original")
        created = manager.create(password="p1", max_views=1)
        clipboard("new clipboard")
        clock.advance(minutes=3)

        edited = manager.edit(created.id, max_views=9, valid_minutes=9)

        assert edited.content == "original"
        assert edited.password == "p1"
        assert edited.created_at == created.created_at


# =====================================================================
# Delete
# =====================================================================


class TestDelete:

    def test_delete_then_not_found(self, manager, clipboard):
        clipboard("x")
        share_id = manager.create().id

        manager.delete(share_id)

        with pytest.raises(ShareNotFoundError):
            manager.consume(share_id)

    def test_delete_is_idempotent(self, manager):
        manager.delete("never-existed")
        manager.delete("never-existed")

    def test_reserved_keys_survive_delete(self, manager, clipboard, store):
        clipboard("keep me")
        manager.delete("clipboard")
        assert store.get("clipboard") == "keep me"

    def test_deleted_custom_id_can_be_reused(self, manager, clipboard):
        clipboard("x")
        manager.create(custom_id="note1")
        manager.delete("note1")
        clipboard("y")

        manager.create(custom_id="note1")

        assert manager.consume("note1") == "y"
