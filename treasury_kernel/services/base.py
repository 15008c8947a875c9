"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write-side service in the kernel.  Concrete services receive a
    SQLAlchemy ``Session`` and use ``session.flush()``, never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's transaction
      and never commit or roll back themselves.  The caller
      (``session_scope()``, a script, the import committer, or a test) owns
      commit/rollback.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from treasury_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.

    Non-goals:
        - Does NOT provide query-only (read) methods -- those belong
          in ``treasury_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
