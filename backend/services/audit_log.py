"""
Procurement Workflow Hub - Audit Log

Append-only record of every accepted status change.
"""

import asyncio
import logging
from typing import Any, Dict, List

from services.document_model import StatusChangeRecord

logger = logging.getLogger(__name__)

COLLECTION_NAME = "audit_log"


class MongoAuditLog:
    """Audit entries stored one per MongoDB document in `audit_log`."""

    def __init__(self, db, collection_name: str = COLLECTION_NAME):
        self.collection = db[collection_name]

    async def create_indexes(self):
        await self.collection.create_index("doc_number")
        await self.collection.create_index("timestamp")

    async def append(self, record: StatusChangeRecord) -> None:
        await self.collection.insert_one(record.to_dict())

    async def find_by_document(self, doc_number: str, limit: int = 200) -> List[Dict[str, Any]]:
        cursor = self.collection.find(
            {"doc_number": doc_number},
            {"_id": 0}
        ).sort("timestamp", 1).limit(limit)
        return await cursor.to_list(limit)


class InMemoryAuditLog:

    def __init__(self):
        self.records: List[StatusChangeRecord] = []

    async def append(self, record: StatusChangeRecord) -> None:
        await asyncio.sleep(0)
        self.records.append(record)

    async def find_by_document(self, doc_number: str, limit: int = 200) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in self.records if r.doc_number == doc_number][:limit]
