"""
Procurement Workflow Hub - Routes Package

Modular API routers for the hub.
"""

from .auth import router as auth_router
from .documents import router as documents_router, set_store as set_documents_store
from .workflows import router as workflows_router, set_dependencies as set_workflows_deps

__all__ = [
    'auth_router',
    'documents_router', 'set_documents_store',
    'workflows_router', 'set_workflows_deps',
]
