"""
BaseService -- abstract base for kernel services.

Responsibility:
    Common constructor and session contract.  Services receive a SQLAlchemy
    ``Session`` and use ``flush()`` (or SAVEPOINTs) within the caller's
    transaction -- never ``commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - The caller owns commit/rollback.  A batch that wants per-item
      isolation wraps each item in ``session.begin_nested()`` itself.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """Abstract base class for kernel services."""

    def __init__(self, session: Session):
        self.session = session
