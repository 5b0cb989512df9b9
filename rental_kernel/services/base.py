"""
BaseService -- abstract base for kernel services that write.

Responsibility:
    Common constructor and session-handling contract.  Services persist via
    ``session.flush()`` and never ``session.commit()``; the reconciliation
    facade (or the test harness) owns commit and rollback.

Failure modes:
    - A subclass that commits breaks the all-or-nothing guarantee of a
      payment reconciliation.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.  Per-item isolation, where needed, uses
          ``session.begin_nested()`` savepoints.
    """

    def __init__(self, session: Session):
        self.session = session
