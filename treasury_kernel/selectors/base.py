"""
Module: treasury_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/ and models/.
    MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors accept a Session from the caller but never
      add, delete, flush or commit.
    - DTO return convention: selectors return frozen dataclasses, not ORM
      instances.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from treasury_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs or computed results.
    """

    def __init__(self, session: Session):
        self.session = session
