"""Outer service layer: transaction scope, conflict retry, event dispatch."""

from forms_services.workflow_api import FormWorkflowAPI, build_workflow_api

__all__ = [
    "FormWorkflowAPI",
    "build_workflow_api",
]
