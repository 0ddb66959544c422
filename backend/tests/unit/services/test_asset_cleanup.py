"""
Unit Tests for the Pending-Deletion Log
"""
from unittest.mock import AsyncMock

from app.services.asset_cleanup import PENDING_DELETION_COLLECTION, AssetCleanup


class TestMarkForDeletion:
    async def test_marks_store_urls_and_skips_foreign(self, store, assets):
        cleanup = AssetCleanup(store, assets)
        ours = assets.url_for("photos/a.jpg")

        ids = await cleanup.mark_for_deletion([ours, None, "https://elsewhere.test/x.jpg"], "test")

        assert len(ids) == 1
        record = (await store.get(f"{PENDING_DELETION_COLLECTION}/{ids[0]}")).to_dict()
        assert record["key"] == "photos/a.jpg"
        assert record["context"] == "test"
        assert record["status"] == "pending"

    async def test_replace_asset(self, store, assets):
        cleanup = AssetCleanup(store, assets)
        old = assets.url_for("photos/old.jpg")

        assert await cleanup.replace_asset(old, old) == []
        assert await cleanup.replace_asset(None, old) == []
        assert len(await cleanup.replace_asset(old, assets.url_for("photos/new.jpg"))) == 1

    async def test_replace_asset_array_marks_removed_only(self, store, assets):
        cleanup = AssetCleanup(store, assets)
        a, b, c = (assets.url_for(f"img/{n}.jpg") for n in "abc")

        ids = await cleanup.replace_asset_array([a, b], [b, c], "content-body-image")

        records = [(await store.get(f"{PENDING_DELETION_COLLECTION}/{i}")).to_dict() for i in ids]
        assert [r["key"] for r in records] == ["img/a.jpg"]


class TestSweep:
    async def test_sweep_deletes_and_records_outcome(self, store, assets):
        cleanup = AssetCleanup(store, assets)
        url = await assets.upload(b"x", "photos/a.jpg")
        await cleanup.mark_for_deletion(url, "test")

        summary = await cleanup.sweep_pending_deletions()

        assert summary == {"checked": 1, "deleted": 1, "failed": 0}
        assert await assets.exists("photos/a.jpg") is False
        records = await store.list(PENDING_DELETION_COLLECTION)
        assert records[0].get("status") == "deleted"
        # Nothing pending on the next pass
        assert (await cleanup.sweep_pending_deletions())["checked"] == 0

    async def test_sweep_records_failures(self, store, assets):
        cleanup = AssetCleanup(store, assets)
        await cleanup.mark_for_deletion(assets.url_for("photos/a.jpg"), "test")
        assets.delete = AsyncMock(side_effect=RuntimeError("denied"))

        summary = await cleanup.sweep_pending_deletions()

        assert summary["failed"] == 1
        record = (await store.list(PENDING_DELETION_COLLECTION))[0]
        assert record.get("status") == "failed"
        assert record.get("error") == "denied"
