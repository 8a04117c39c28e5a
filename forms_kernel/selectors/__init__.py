"""Read-only query selectors."""

from forms_kernel.selectors.response_selector import (
    ResponseCursor,
    ResponsePage,
    ResponseSelector,
)

__all__ = [
    "ResponseCursor",
    "ResponsePage",
    "ResponseSelector",
]
