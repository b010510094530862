"""
Procurement Workflow Hub - Completion Percentage

Share of required fields that are filled in, for the stages a document has
reached. Always derived from field values and status; never set directly.
"""

from typing import List

from services.document_model import Document, is_blank
from services.validators import (
    INTAKE_FIELDS, MAIN_PATH, STATUS_REQUIREMENTS,
    conditional_fields, is_gated_stage,
)
from services.workflow_config import WorkflowConfig


class CompletionCalculator:

    def __init__(self, config: WorkflowConfig):
        self.config = config

    def required_fields(self, doc: Document, vendor_approved: bool) -> List[str]:
        required = list(INTAKE_FIELDS)
        path = MAIN_PATH.get(doc.kind, ())

        # Side branches (revision, rejection, cancellation) only count intake fields
        if doc.status not in path:
            return required

        requirements = STATUS_REQUIREMENTS.get(doc.kind, {})
        for stage in path[:path.index(doc.status) + 1]:
            for name in requirements.get(stage, ()):
                if name not in required:
                    required.append(name)

        if is_gated_stage(doc.kind, doc.status):
            for name in conditional_fields(doc, vendor_approved, self.config):
                if name not in required:
                    required.append(name)
        return required

    def compute(self, doc: Document, vendor_approved: bool) -> int:
        """Percentage 0-100, rounded half up. No required fields counts as complete."""
        required = self.required_fields(doc, vendor_approved)
        if not required:
            return 100
        filled = sum(1 for name in required if not is_blank(doc.get(name)))
        return (200 * filled + len(required)) // (2 * len(required))
