"""
Document store backends

Every persisted record (users, purchases, progress, rate-limit counters,
book access tokens...) lives in a named collection of JSON-like documents.
Services only talk to the :class:`DocumentStore` interface so the same code
runs against Firestore in deployment and a process-local store in
development and tests.
"""
import copy
import logging
import operator
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple

from ...core.config import settings

logger = logging.getLogger(__name__)

Filter = Tuple[str, str, Any]

_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "in": lambda field_value, options: field_value in options,
    "array_contains": lambda field_value, item: item in (field_value or []),
}


class DocumentStore(ABC):
    """Minimal document-store contract shared by all backends"""

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return the document (without its id) or None"""

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Create or fully replace a document"""

    @abstractmethod
    def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Merge fields into an existing document"""

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document, returning whether it existed"""

    @abstractmethod
    def query(
        self,
        collection: str,
        filters: Optional[List[Filter]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Return matching documents, each with an ``id`` key"""


class MemoryDocumentStore(DocumentStore):
    """Process-local store. Contents vanish on restart."""

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()

    def get(self, collection, doc_id):
        with self._lock:
            doc = self._collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def set(self, collection, doc_id, data):
        with self._lock:
            self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(data)

    def update(self, collection, doc_id, data):
        with self._lock:
            docs = self._collections.setdefault(collection, {})
            if doc_id not in docs:
                raise KeyError(f"{collection}/{doc_id} does not exist")
            docs[doc_id].update(copy.deepcopy(data))

    def delete(self, collection, doc_id):
        with self._lock:
            return self._collections.get(collection, {}).pop(doc_id, None) is not None

    def query(self, collection, filters=None, order_by=None, descending=False, limit=None):
        with self._lock:
            docs = [
                dict(copy.deepcopy(data), id=doc_id)
                for doc_id, data in self._collections.get(collection, {}).items()
            ]

        for field, op, value in filters or []:
            compare = _OPERATORS[op]
            docs = [doc for doc in docs if field in doc and compare(doc[field], value)]

        if order_by:
            present = [doc for doc in docs if doc.get(order_by) is not None]
            missing = [doc for doc in docs if doc.get(order_by) is None]
            present.sort(key=lambda doc: doc[order_by], reverse=descending)
            docs = present + missing

        if limit:
            docs = docs[:limit]
        return docs

    def clear(self) -> None:
        with self._lock:
            self._collections.clear()


class FirestoreDocumentStore(DocumentStore):
    """Firestore-backed store (firebase-admin client)"""

    def __init__(self, client):
        self.db = client

    def get(self, collection, doc_id):
        doc = self.db.collection(collection).document(doc_id).get()
        if not doc.exists:
            return None
        return doc.to_dict()

    def set(self, collection, doc_id, data):
        self.db.collection(collection).document(doc_id).set(data)

    def update(self, collection, doc_id, data):
        self.db.collection(collection).document(doc_id).update(data)

    def delete(self, collection, doc_id):
        doc_ref = self.db.collection(collection).document(doc_id)
        if not doc_ref.get().exists:
            return False
        doc_ref.delete()
        return True

    def query(self, collection, filters=None, order_by=None, descending=False, limit=None):
        from firebase_admin import firestore

        query = self.db.collection(collection)
        for field, op, value in filters or []:
            query = query.where(field, op, value)

        if order_by:
            direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            query = query.order_by(order_by, direction=direction)

        if limit:
            query = query.limit(limit)

        results = []
        for doc in query.stream():
            data = doc.to_dict()
            data['id'] = doc.id
            results.append(data)
        return results


_store: Optional[DocumentStore] = None
_store_lock = threading.Lock()


def create_store(backend: str) -> DocumentStore:
    if backend == "firestore":
        from ...core.firebase_config import get_db, initialize_firebase

        if not initialize_firebase():
            raise RuntimeError("STORE_BACKEND=firestore but Firebase credentials are not configured")
        logger.info("✅ Using Firestore document store")
        return FirestoreDocumentStore(get_db())

    if backend != "memory":
        raise ValueError(f"Unknown STORE_BACKEND: {backend}")
    logger.info("Using in-memory document store")
    return MemoryDocumentStore()


def get_store() -> DocumentStore:
    """Process-wide store selected by ``STORE_BACKEND`` (FastAPI dependency)"""
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                _store = create_store(settings.STORE_BACKEND)
    return _store
