"""
Unit Tests for data migrations
"""
from datetime import datetime, timezone

import pytest

from app.services.migrations import MigrationService


@pytest.fixture
def migrations(store) -> MigrationService:
    return MigrationService(store)


def _at(day: int) -> datetime:
    return datetime(2024, 5, day, tzinfo=timezone.utc)


class TestStudentOrderMigration:
    async def test_backfills_after_current_max(self, store, migrations, create_graduation):
        gid = await create_graduation()
        base = f"graduations/{gid}/students"
        await store.set(f"{base}/a", {"name": "Zed", "order": 4})
        await store.set(f"{base}/b", {"name": "Beth", "createdAt": _at(2)})
        await store.set(f"{base}/c", {"name": "Anna", "createdAt": _at(2)})
        await store.set(f"{base}/d", {"name": "Carl", "createdAt": _at(1)})

        result = await migrations.migrate_student_order(gid)

        assert result == {"success": True, "migrated": 3, "skipped": 1, "total": 4}
        orders = {s.id: s.get("order") for s in await store.list(base)}
        assert orders == {"a": 4, "d": 5, "c": 6, "b": 7}

    async def test_starts_at_zero_without_ordered_students(self, store, migrations, create_graduation):
        gid = await create_graduation()
        await store.set(f"graduations/{gid}/students/x", {"name": "X", "createdAt": _at(1)})

        await migrations.migrate_student_order(gid)

        assert (await store.get(f"graduations/{gid}/students/x")).get("order") == 0

    async def test_nothing_to_do(self, store, migrations, create_graduation):
        gid = await create_graduation()
        assert await migrations.migrate_student_order(gid) == {"success": True, "migrated": 0, "skipped": 0, "total": 0}

        await store.set(f"graduations/{gid}/students/x", {"name": "X", "order": 0})
        assert (await migrations.migrate_student_order(gid))["migrated"] == 0

    async def test_migrate_all(self, store, migrations, create_graduation):
        first = await create_graduation()
        second = await create_graduation()
        await store.set(f"graduations/{first}/students/x", {"name": "X"})

        results = {r["graduationId"]: r for r in await migrations.migrate_all_student_orders()}

        assert results[first]["migrated"] == 1
        assert results[second]["total"] == 0


class TestEditorMigration:
    def test_plan_for_legacy_owner(self, migrations):
        plan = migrations.plan_editor_migration("g1", {"schoolName": "Old", "ownerUid": "alice"})

        assert plan.needs_migration
        assert plan.updates == {"editors": ["alice"], "createdBy": "alice"}
        assert not plan.errors

    def test_plan_adds_owner_to_existing_editors(self, migrations):
        plan = migrations.plan_editor_migration("g1", {"ownerUid": "alice", "editors": ["bob"], "createdBy": "bob"})
        assert plan.updates == {"editors": ["bob", "alice"]}

    def test_plan_already_migrated(self, migrations):
        plan = migrations.plan_editor_migration("g1", {"editors": ["bob"], "createdBy": "bob"})
        assert not plan.needs_migration
        assert plan.updates == {}

    def test_plan_without_any_owner(self, migrations):
        plan = migrations.plan_editor_migration("g1", {"schoolName": "Lost"})
        assert not plan.needs_migration
        assert plan.errors

    async def test_dry_run_does_not_write(self, store, migrations):
        await store.set("graduations/legacy", {"schoolName": "Old", "ownerUid": "alice"})

        result = await migrations.migrate_editors("legacy")

        assert result.updates["editors"] == ["alice"]
        assert (await store.get("graduations/legacy")).get("editors") is None

    async def test_migrate_all_editors(self, store, migrations, create_graduation):
        await create_graduation(created_by="carol")
        await store.set("graduations/legacy", {"schoolName": "Old", "ownerUid": "alice"})
        await store.set("graduations/broken", {"schoolName": "Broken"})

        summary = await migrations.migrate_all_editors(dry_run=False)

        assert summary["total"] == 3
        assert summary["alreadyMigrated"] == 1
        assert summary["needsMigration"] == 1
        assert summary["successful"] == 1
        assert [e["graduationId"] for e in summary["errors"]] == ["broken"]
        legacy = await store.get("graduations/legacy")
        assert legacy.get("editors") == ["alice"]
        assert legacy.get("createdBy") == "alice"
        assert legacy.get("ownerUid") == "alice"
