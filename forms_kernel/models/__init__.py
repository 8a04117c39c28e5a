"""ORM models for the forms kernel."""

from forms_kernel.models.form import FormModel
from forms_kernel.models.response import FormResponseModel, ReviewerDecisionModel

__all__ = [
    "FormModel",
    "FormResponseModel",
    "ReviewerDecisionModel",
]
