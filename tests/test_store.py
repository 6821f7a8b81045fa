from app.services.base.document_service import DocumentBaseService
from app.services.base.store import MemoryDocumentStore


def test_memory_store_copies_documents():
    store = MemoryDocumentStore()
    doc = {"tags": ["a"]}
    store.set("books", "b1", doc)
    doc["tags"].append("b")
    assert store.get("books", "b1") == {"tags": ["a"]}


def test_memory_store_query_filters_and_orders():
    store = MemoryDocumentStore()
    store.set("progress", "1", {"user_id": "u1", "page": 3})
    store.set("progress", "2", {"user_id": "u1", "page": 1})
    store.set("progress", "3", {"user_id": "u2", "page": 2})

    rows = store.query("progress", [("user_id", "==", "u1")], order_by="page")
    assert [r["id"] for r in rows] == ["2", "1"]
    assert [r["id"] for r in store.query("progress", [("page", ">=", 2)], order_by="page", descending=True)] == ["1", "3"]
    assert len(store.query("progress", [], limit=1)) == 1


async def test_document_service_timestamps(clock):
    service = DocumentBaseService(MemoryDocumentStore(), "books", clock)
    created = await service.create({"title": "A"}, doc_id="a")
    clock.advance(minutes=5)
    updated = await service.update("a", {"title": "B"})

    assert updated["created_at"] == created["created_at"]
    assert updated["updated_at"] > created["updated_at"]
    assert await service.find_by_id("missing") is None
