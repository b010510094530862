"""
Procurement Workflow Hub - Documents Router

Read access to PR/PO rows. Documents are changed only through
/workflows/{number}/transition.
"""

from fastapi import APIRouter, HTTPException

router = APIRouter(prefix="/documents", tags=["documents"])

# Document store - set by main app
document_store = None


def set_store(store):
    global document_store
    document_store = store


@router.get("/{doc_number}")
async def get_document(doc_number: str):
    """Get a single document by number."""
    found = await document_store.find_by_number(doc_number)
    if not found:
        raise HTTPException(status_code=404, detail="Document not found")
    doc, _ = found
    return doc.to_row()
