"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write service in the kernel layer.  Services use
    ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Services flush within the caller's transaction and never commit or
    roll back the outer transaction themselves.  The caller
    (FormWorkflowAPI, a script, or the test harness) owns commit/rollback.
    Savepoints opened with ``begin_nested()`` are the one exception: a
    service may roll back its own savepoint.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from forms_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide query-only (read) methods -- those belong
          in ``forms_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
