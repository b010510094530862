"""
Procurement Workflow Hub - Vendor Directory

Pre-approved vendor lookup. Approved vendors skip the quote requirement
between the quote and adjudication thresholds.
"""

import logging
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

COLLECTION_NAME = "approved_vendors"


def normalize_vendor(name: Optional[str]) -> str:
    return " ".join((name or "").split()).lower()


class MongoVendorDirectory:

    def __init__(self, db, collection_name: str = COLLECTION_NAME):
        self.collection = db[collection_name]

    async def create_indexes(self):
        await self.collection.create_index("name_normalized", unique=True)

    async def is_approved(self, vendor: Optional[str]) -> bool:
        normalized = normalize_vendor(vendor)
        if not normalized:
            return False
        row = await self.collection.find_one(
            {"name_normalized": normalized, "active": {"$ne": False}},
            {"_id": 0, "name_normalized": 1}
        )
        return row is not None


class InMemoryVendorDirectory:

    def __init__(self, approved: Iterable[str] = ()):
        self._approved = {normalize_vendor(v) for v in approved}
        self.lookups = 0

    async def is_approved(self, vendor: Optional[str]) -> bool:
        self.lookups += 1
        normalized = normalize_vendor(vendor)
        return bool(normalized) and normalized in self._approved
