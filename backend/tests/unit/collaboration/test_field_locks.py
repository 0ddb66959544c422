"""
Unit Tests for Advisory Field Locks
"""
import asyncio
from datetime import timedelta

import pytest

from app.services.field_locks import FieldLockManager, parse_locks, sanitize_field_path
from app.services.graduation_repository import graduation_path


@pytest.fixture
async def graduation_id(create_graduation, graduations):
    gid = await create_graduation(created_by="alice")
    await graduations.add_editor(gid, "bob")
    return gid


@pytest.fixture
def alice(store):
    return FieldLockManager(store, "alice", "alice@example.com", cleanup_seconds=3600)


@pytest.fixture
def bob(store):
    return FieldLockManager(store, "bob", "bob@example.com", cleanup_seconds=3600)


class TestHelpers:
    def test_sanitize_replaces_dots(self):
        assert sanitize_field_path("students.s1.name") == "students_s1_name"

    def test_parse_locks_drops_stale_and_malformed(self, clock):
        now = clock()
        locks = parse_locks(
            {
                "live": {"editorUid": "u1", "email": "u1@x", "timestamp": now - timedelta(minutes=4)},
                "stale": {"editorUid": "u2", "timestamp": now - timedelta(minutes=5)},
                "broken": "nope",
            },
            now,
            timedelta(minutes=5),
        )
        assert list(locks) == ["live"]
        assert locks["live"].to_dict()["editorUid"] == "u1"


class TestLockLifecycle:
    async def test_lock_blocks_other_editor(self, alice, bob, graduation_id):
        assert await alice.lock_field(graduation_id, "schoolName") is True
        assert await bob.lock_field(graduation_id, "schoolName") is False
        # Re-acquiring your own lock refreshes it
        assert await alice.lock_field(graduation_id, "schoolName") is True

    async def test_lock_written_under_sanitized_key(self, store, alice, graduation_id, clock):
        await alice.lock_field(graduation_id, "config.primaryColor")
        lock = (await store.get(graduation_path(graduation_id))).get("lockedFields.config_primaryColor")
        assert lock == {"editorUid": "alice", "email": "alice@example.com", "timestamp": clock()}

    async def test_stale_lock_can_be_taken(self, alice, bob, graduation_id, clock):
        await alice.lock_field(graduation_id, "schoolName")
        clock.advance(minutes=5)
        assert await bob.lock_field(graduation_id, "schoolName") is True

    async def test_unlock_only_own_locks(self, store, alice, bob, graduation_id):
        await alice.lock_field(graduation_id, "schoolName")

        assert await bob.unlock_field(graduation_id, "schoolName") is False
        assert await alice.unlock_field(graduation_id, "schoolName") is True
        assert (await store.get(graduation_path(graduation_id))).get("lockedFields") == {}

    async def test_force_unlock(self, alice, bob, graduation_id):
        await alice.lock_field(graduation_id, "schoolName")
        assert await bob.force_unlock_field(graduation_id, "schoolName") is True
        assert await bob.lock_field(graduation_id, "schoolName") is True

    async def test_lock_on_missing_graduation(self, alice):
        assert await alice.lock_field("missing", "schoolName") is False


class TestLockQueries:
    async def test_queries_follow_snapshots(self, alice, bob, graduation_id, clock):
        await bob.initialize(graduation_id)
        await alice.lock_field(graduation_id, "schoolName")

        owner = bob.get_field_lock_owner(graduation_id, "schoolName")
        assert owner.editor_uid == "alice"
        assert bob.is_field_locked(graduation_id, "schoolName") is True
        assert bob.is_field_locked_by_me(graduation_id, "schoolName") is False
        assert [lock.field_path for lock in bob.get_all_locked_fields(graduation_id)] == ["schoolName"]

        clock.advance(minutes=5)
        assert bob.is_field_locked(graduation_id, "schoolName") is False
        await bob.cleanup(graduation_id)

    async def test_lock_change_callbacks(self, alice, bob, graduation_id):
        changes = []
        await bob.initialize(graduation_id)
        bob.on_lock_change(graduation_id, "schoolName", lambda locked, owner: changes.append(
            (locked, owner.editor_uid if owner else None)
        ))

        await alice.lock_field(graduation_id, "schoolName")
        await alice.unlock_field(graduation_id, "schoolName")
        bob.off_lock_change(graduation_id, "schoolName")
        await alice.lock_field(graduation_id, "schoolName")

        assert changes == [(True, "alice"), (False, None)]
        await bob.cleanup(graduation_id)

    async def test_cleanup_releases_own_locks(self, store, alice, graduation_id):
        await alice.initialize(graduation_id)
        await alice.lock_field(graduation_id, "schoolName")
        await alice.lock_field(graduation_id, "graduationYear")

        await alice.cleanup(graduation_id)

        assert (await store.get(graduation_path(graduation_id))).get("lockedFields") == {}
        assert store.listener_count(graduation_path(graduation_id)) == 0


class TestStaleLockPruning:
    async def test_prune_removes_only_stale(self, store, alice, bob, graduation_id, clock):
        await alice.lock_field(graduation_id, "schoolName")
        clock.advance(minutes=4)
        await bob.lock_field(graduation_id, "graduationYear")
        clock.advance(minutes=2)

        assert await bob.prune_stale_locks(graduation_id) == 1
        remaining = (await store.get(graduation_path(graduation_id))).get("lockedFields")
        assert list(remaining) == ["graduationYear"]

    async def test_prune_on_missing_graduation(self, alice):
        assert await alice.prune_stale_locks("missing") == 0

    async def test_background_pruner_runs(self, store, graduation_id, clock):
        manager = FieldLockManager(store, "alice", cleanup_seconds=0.01)
        await manager.lock_field(graduation_id, "schoolName")
        clock.advance(minutes=10)

        await manager.initialize(graduation_id)
        await asyncio.sleep(0.1)

        assert (await store.get(graduation_path(graduation_id))).get("lockedFields") == {}
        await manager.cleanup(graduation_id)
