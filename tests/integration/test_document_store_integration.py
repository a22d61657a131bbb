"""
Integration tests for DocumentStore with real MongoDB.

Tests paging, changelogs and subdocument updates end to end.
"""

import pytest
from bson import ObjectId

from mdb_storage.changelog import ChangelogEntry, Edited
from mdb_storage.exceptions import NotFoundError, UpdateError
from mdb_storage.store import DocumentStore


@pytest.fixture
async def orders(real_connection, order_schema):
    store = DocumentStore(real_connection, "Order", "orders", order_schema, auto_bootstrap=False)
    await store.bootstrap()
    return store


@pytest.mark.integration
@pytest.mark.asyncio
class TestDocumentStoreIntegration:
    """Integration tests for CRUD with changelogs."""

    async def test_insert_records_one_empty_changelog(self, orders, rc, sample_order):
        inserted = await orders.insert_one(rc, sample_order)

        assert "_id" not in inserted
        stored = await orders.find_one({"orderId": "order-1"})
        assert "_id" not in stored
        assert len(stored["changelogs"]) == 1
        entry = ChangelogEntry.from_dict(stored["changelogs"][0])
        assert entry.changes == []
        assert entry.token == rc.token

    async def test_pagination_partitions_sorted_set(self, orders, rc):
        for position in (3, 1, 4, 2):
            await orders.insert_one(
                rc, {"orderId": f"order-{position}", "status": "Pending", "position": position}
            )

        first = await orders.find_many({}, {"position": 1}, limit=2, page=1)
        second = await orders.find_many({}, {"position": 1}, limit=2, page=2)
        third = await orders.find_many({}, {"position": 1}, limit=2, page=3)

        assert [doc["position"] for doc in first] == [1, 2]
        assert [doc["position"] for doc in second] == [3, 4]
        assert third == []

    async def test_find_many_filters(self, orders, rc):
        await orders.insert_one(rc, {"orderId": "a", "status": "Pending", "channel": "amazon_de"})
        await orders.insert_one(rc, {"orderId": "b", "status": "Shipped", "channel": "alza_cz"})
        await orders.insert_one(rc, {"orderId": "c", "status": "Pending", "channel": "ebay"})

        result = await orders.find_many({"channel": ["amazon_de", "alza_cz"]}, {"orderId": 1})
        assert [doc["orderId"] for doc in result] == ["a", "b"]

    async def test_update_appends_changelog(self, orders, rc, sample_order):
        await orders.insert_one(rc, sample_order)

        handle = await orders.find_one_and_update(rc, {"orderId": "order-1"})
        handle.original_document["status"] = "Shipped"
        updated = await handle.commit()

        assert updated["status"] == "Shipped"
        assert "_id" not in updated
        assert len(updated["changelogs"]) == 2
        entry = ChangelogEntry.from_dict(updated["changelogs"][-1])
        assert entry.changes == [Edited(path=("status",), lhs="Pending", rhs="Shipped")]

    async def test_commit_after_delete_fails(self, orders, rc, sample_order, real_connection):
        await orders.insert_one(rc, sample_order)
        handle = await orders.find_one_and_update(rc, {"orderId": "order-1"})

        collection = await real_connection.collection("orders")
        await collection.delete_one({"orderId": "order-1"})

        with pytest.raises(UpdateError):
            await handle.commit({"status": "Cancelled"})

    async def test_find_one_not_found(self, orders):
        with pytest.raises(NotFoundError) as exc_info:
            await orders.find_one({"orderId": str(ObjectId())})
        assert exc_info.value.document_name == "Order"


@pytest.mark.integration
@pytest.mark.asyncio
class TestSubdocumentsIntegration:
    """Integration tests for subdocument reads and updates."""

    async def test_find_subdocuments(self, orders, rc, sample_order):
        await orders.insert_one(rc, sample_order)

        items = await orders.find_many_subdocuments("items", {"orderId": "order-1"}, {"sku": "sku-2"})
        assert items == [{"sku": "sku-2", "quantity": 3}]

        first = await orders.find_one_subdocument("items", {"orderId": "order-1"})
        assert first == {"sku": "sku-1", "quantity": 1}

        with pytest.raises(NotFoundError):
            await orders.find_one_subdocument("items", {"orderId": "order-1"}, {"sku": "missing"})

    async def test_mutating_subdocument_reference(self, orders, rc, sample_order):
        await orders.insert_one(rc, sample_order)

        handle = await orders.find_one_subdocument_and_update(
            rc, {"orderId": "order-1"}, "items", lambda item: item["sku"] == "sku-2"
        )
        handle.subdocument_reference["quantity"] = 5
        updated = await handle.commit(handle.document_reference)

        assert updated["items"][1] == {"sku": "sku-2", "quantity": 5}
        entry = ChangelogEntry.from_dict(updated["changelogs"][-1])
        assert entry.changes == [Edited(path=("items", 1, "quantity"), lhs=3, rhs=5)]

    async def test_commit_and_return_subdocument(self, orders, rc, sample_order):
        await orders.insert_one(rc, sample_order)

        handle = await orders.find_one_subdocument_and_update(
            rc, {"orderId": "order-1"}, "items", lambda item: item["sku"] == "sku-1"
        )
        handle.subdocument_reference["quantity"] = 2

        assert await handle.commit_and_return_subdocument() == {"sku": "sku-1", "quantity": 2}
