"""
Base document service with common CRUD operations
"""
import logging
import uuid
from typing import List, Dict, Any, Optional

from ...core.clock import Clock, to_iso, utcnow
from ...core.exceptions import StoreException, ResourceNotFoundException
from .store import DocumentStore, Filter

logger = logging.getLogger(__name__)


class DocumentBaseService:
    """Base service for one collection of the document store"""

    def __init__(self, store: DocumentStore, collection_name: str, clock: Clock = utcnow):
        """
        Initialize base service

        Args:
            store: Document store backend
            collection_name: Name of the collection
            clock: Source of the current time (UTC)
        """
        self.store = store
        self.collection_name = collection_name
        self.clock = clock

    def now_iso(self) -> str:
        return to_iso(self.clock())

    async def get_all_by_user(self, user_id: str, order_by: Optional[str] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Get all documents for a user

        Args:
            user_id: User ID to filter by
            order_by: Field to order by
            limit: Maximum number of results

        Returns:
            List of documents

        Raises:
            StoreException: If query fails
        """
        return await self.query([("user_id", "==", user_id)], order_by=order_by, limit=limit)

    async def find_by_id(self, doc_id: str) -> Optional[Dict[str, Any]]:
        """Get a document by ID, or None if it does not exist"""
        try:
            data = self.store.get(self.collection_name, doc_id)
        except Exception as e:
            logger.error(f"Error retrieving document {doc_id} from {self.collection_name}: {str(e)}")
            raise StoreException(
                f"Failed to retrieve document from {self.collection_name}",
                details={"doc_id": doc_id, "error": str(e)}
            )

        if data is None:
            return None
        data['id'] = doc_id
        return data

    async def get_by_id(self, doc_id: str) -> Dict[str, Any]:
        """
        Get a document by ID

        Raises:
            ResourceNotFoundException: If document not found
            StoreException: If the read fails
        """
        data = await self.find_by_id(doc_id)
        if data is None:
            raise ResourceNotFoundException(
                f"Document not found in {self.collection_name}",
                details={"doc_id": doc_id}
            )
        return data

    async def create(self, data: Dict[str, Any], doc_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Create (or replace) a document

        Args:
            data: Document data
            doc_id: Optional document ID (auto-generated if not provided)

        Returns:
            Created document with ID

        Raises:
            StoreException: If creation fails
        """
        result_id = doc_id or str(uuid.uuid4())
        record = {k: v for k, v in data.items() if k != 'id'}
        now = self.now_iso()
        record.setdefault('created_at', now)
        record['updated_at'] = now

        try:
            self.store.set(self.collection_name, result_id, record)
        except Exception as e:
            logger.error(f"Error creating document in {self.collection_name}: {str(e)}")
            raise StoreException(
                f"Failed to create document in {self.collection_name}",
                details={"error": str(e)}
            )

        record['id'] = result_id
        logger.debug(f"Created document {result_id} in {self.collection_name}")
        return record

    async def update(self, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update an existing document

        Returns:
            Updated document

        Raises:
            ResourceNotFoundException: If document not found
            StoreException: If update fails
        """
        await self.get_by_id(doc_id)

        changes = {k: v for k, v in data.items() if k != 'id'}
        changes['updated_at'] = self.now_iso()

        try:
            self.store.update(self.collection_name, doc_id, changes)
        except Exception as e:
            logger.error(f"Error updating document {doc_id} in {self.collection_name}: {str(e)}")
            raise StoreException(
                f"Failed to update document in {self.collection_name}",
                details={"doc_id": doc_id, "error": str(e)}
            )

        logger.debug(f"Updated document {doc_id} in {self.collection_name}")
        return await self.get_by_id(doc_id)

    async def delete(self, doc_id: str) -> bool:
        """
        Delete a document

        Raises:
            ResourceNotFoundException: If document not found
            StoreException: If deletion fails
        """
        try:
            existed = self.store.delete(self.collection_name, doc_id)
        except Exception as e:
            logger.error(f"Error deleting document {doc_id} from {self.collection_name}: {str(e)}")
            raise StoreException(
                f"Failed to delete document from {self.collection_name}",
                details={"doc_id": doc_id, "error": str(e)}
            )

        if not existed:
            raise ResourceNotFoundException(
                f"Document not found in {self.collection_name}",
                details={"doc_id": doc_id}
            )

        logger.debug(f"Deleted document {doc_id} from {self.collection_name}")
        return True

    async def query(
        self,
        filters: List[Filter],
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Query documents with custom filters

        Args:
            filters: List of (field, operator, value) tuples
            order_by: Field to order by
            descending: Reverse the ordering
            limit: Maximum number of results

        Raises:
            StoreException: If query fails
        """
        try:
            results = self.store.query(
                self.collection_name, filters, order_by=order_by, descending=descending, limit=limit
            )
        except Exception as e:
            logger.error(f"Error querying {self.collection_name}: {str(e)}")
            raise StoreException(
                f"Failed to query {self.collection_name}",
                details={"error": str(e)}
            )

        logger.debug(f"Query returned {len(results)} documents from {self.collection_name}")
        return results

    async def list_all(self) -> List[Dict[str, Any]]:
        return await self.query([])
