"""
Procurement Workflow Hub - Document Store

Keyed access to the flat PR/PO rows. The workflow engine depends only on the
DocumentStore interface; MongoDocumentStore is the production adapter and
InMemoryDocumentStore backs tests and local runs.
"""

import asyncio
import copy
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from pymongo.errors import PyMongoError

from services.document_model import Document, encode_columns
from services.workflow_errors import PersistenceFailureError

logger = logging.getLogger(__name__)

COLLECTION_NAME = "procurement_documents"


class DocumentStore(ABC):
    """Interface consumed by the workflow engine."""

    @abstractmethod
    async def find_by_number(self, number: str) -> Optional[Tuple[Document, Any]]:
        """Return (document, row_ref) or None when no row has that number."""

    @abstractmethod
    async def commit_transition(
        self, row_ref: Any, number: str, expected_status: str, values: Dict[str, Any]
    ) -> None:
        """
        Atomically write the given columns of one row, only if its status is
        still expected_status. Other columns are left untouched.

        Raises PersistenceFailureError on a write error or a status conflict.
        """

    @abstractmethod
    async def append_row(self, kind: str, doc: Document) -> None:
        """Insert a new row. Raises PersistenceFailureError."""

    @abstractmethod
    async def update_fields(self, number: str, values: Dict[str, Any]) -> None:
        """Write selected columns of one row, leaving the others untouched."""

    @abstractmethod
    async def find_by_status(self, kind: Optional[str], statuses: List[str]) -> List[Document]:
        """All documents of a kind (any kind when None) in one of the statuses."""


# =============================================================================
# MONGODB ADAPTER
# =============================================================================

class MongoDocumentStore(DocumentStore):
    """Rows live in one MongoDB collection, keyed by the unique `number` column."""

    def __init__(self, db, collection_name: str = COLLECTION_NAME):
        self.collection = db[collection_name]

    async def create_indexes(self):
        await self.collection.create_index("number", unique=True)
        await self.collection.create_index([("kind", 1), ("status", 1)])

    async def find_by_number(self, number: str) -> Optional[Tuple[Document, Any]]:
        try:
            row = await self.collection.find_one({"number": number})
        except PyMongoError as e:
            raise PersistenceFailureError(f"Failed to read {number}: {e}", cause=e)
        if not row:
            return None
        return Document.from_row(row), row["_id"]

    async def commit_transition(
        self, row_ref: Any, number: str, expected_status: str, values: Dict[str, Any]
    ) -> None:
        try:
            result = await self.collection.update_one(
                {"_id": row_ref, "status": expected_status},
                {"$set": encode_columns(values)}
            )
        except PyMongoError as e:
            raise PersistenceFailureError(f"Failed to write {number}: {e}", cause=e)
        if result.matched_count == 0:
            raise PersistenceFailureError(
                f"{number} is no longer '{expected_status}'; it was changed or removed concurrently"
            )

    async def append_row(self, kind: str, doc: Document) -> None:
        row = doc.to_row()
        row["kind"] = kind
        try:
            await self.collection.insert_one(row)
        except PyMongoError as e:
            raise PersistenceFailureError(f"Failed to insert {doc.number}: {e}", cause=e)

    async def update_fields(self, number: str, values: Dict[str, Any]) -> None:
        try:
            await self.collection.update_one({"number": number}, {"$set": encode_columns(values)})
        except PyMongoError as e:
            raise PersistenceFailureError(f"Failed to update {number}: {e}", cause=e)

    async def find_by_status(self, kind: Optional[str], statuses: List[str]) -> List[Document]:
        query = {"status": {"$in": list(statuses)}}
        if kind:
            query["kind"] = kind
        try:
            rows = await self.collection.find(query).to_list(None)
        except PyMongoError as e:
            raise PersistenceFailureError(f"Failed to list documents: {e}", cause=e)
        return [Document.from_row(row) for row in rows]


# =============================================================================
# IN-MEMORY ADAPTER
# =============================================================================

class InMemoryDocumentStore(DocumentStore):
    """
    Dict-backed store. Every call yields to the event loop once so concurrent
    transitions interleave the way they would against a real database.
    """

    def __init__(self, documents: List[Document] = None):
        self._rows: Dict[str, Dict[str, Any]] = {}
        for doc in documents or []:
            self._rows[doc.number] = doc.to_row()

    def add(self, doc: Document) -> None:
        self._rows[doc.number] = doc.to_row()

    def raw_row(self, number: str) -> Optional[Dict[str, Any]]:
        """Copy of the stored row, for inspection."""
        row = self._rows.get(number)
        return copy.deepcopy(row) if row is not None else None

    def __len__(self):
        return len(self._rows)

    async def find_by_number(self, number: str) -> Optional[Tuple[Document, Any]]:
        await asyncio.sleep(0)
        row = self._rows.get(number)
        if row is None:
            return None
        return Document.from_row(copy.deepcopy(row)), number

    async def commit_transition(
        self, row_ref: Any, number: str, expected_status: str, values: Dict[str, Any]
    ) -> None:
        await asyncio.sleep(0)
        row = self._rows.get(row_ref)
        if row is None or row.get("status") != expected_status:
            raise PersistenceFailureError(
                f"{number} is no longer '{expected_status}'; it was changed or removed concurrently"
            )
        row.update(encode_columns(values))

    async def append_row(self, kind: str, doc: Document) -> None:
        await asyncio.sleep(0)
        if doc.number in self._rows:
            raise PersistenceFailureError(f"Document {doc.number} already exists")
        row = doc.to_row()
        row["kind"] = kind
        self._rows[doc.number] = row

    async def update_fields(self, number: str, values: Dict[str, Any]) -> None:
        await asyncio.sleep(0)
        if number not in self._rows:
            raise PersistenceFailureError(f"Document {number} not found")
        self._rows[number].update(encode_columns(values))

    async def find_by_status(self, kind: Optional[str], statuses: List[str]) -> List[Document]:
        await asyncio.sleep(0)
        return [
            Document.from_row(copy.deepcopy(row))
            for row in self._rows.values()
            if row.get("status") in statuses and (kind is None or row.get("kind") == kind)
        ]
