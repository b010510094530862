"""
Procurement Workflow Hub - Queue Positions

Ordinal position of "In Queue" documents of one kind: urgent documents
first, then by submission time ascending. Ties keep store order.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List

from services.document_model import Document
from services.transition_table import DocStatus

logger = logging.getLogger(__name__)

_NEVER = datetime.max.replace(tzinfo=timezone.utc)


class QueuePositionCalculator:

    @staticmethod
    def order(documents: List[Document]) -> List[Document]:
        return sorted(
            documents,
            key=lambda d: (not d.urgent, d.submitted_at or _NEVER)
        )

    @classmethod
    def compute(cls, documents: List[Document]) -> Dict[str, int]:
        """Map document number -> 1-based queue position."""
        return {
            doc.number: position
            for position, doc in enumerate(cls.order(documents), start=1)
        }

    async def recompute(self, store, kind: str) -> Dict[str, int]:
        """Rewrite queue positions for every In Queue document of a kind."""
        queued = await store.find_by_status(kind, [DocStatus.IN_QUEUE.value])
        positions = self.compute(queued)

        for doc in queued:
            position = positions[doc.number]
            if doc.queue_position != position:
                await store.update_fields(doc.number, {"queue_position": position})

        logger.info("Queue positions recomputed: kind=%s, queued=%d", kind, len(queued))
        return positions
