"""Kernel services -- write-side operations. Flush, never commit."""

from forms_kernel.services.form_catalog import FormCatalog
from forms_kernel.services.workflow_service import ResponseWorkflowService, WorkflowResult

__all__ = [
    "FormCatalog",
    "ResponseWorkflowService",
    "WorkflowResult",
]
