"""
BaseService -- abstract base for kernel write services.

Responsibility:
    Common constructor and session contract for every service that writes.
    Services receive a SQLAlchemy ``Session`` and persist with
    ``session.flush()``, never ``session.commit()``.

Architecture position:
    Kernel > Services.

Invariants enforced:
    Transaction boundaries belong to the caller.  Services flush inside the
    caller's unit of work and never commit or roll back, so a module service
    (e.g. IncomeService) can make a payroll record and its ledger posting
    one atomic unit.
"""

from abc import ABC

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.

    Non-goals:
        - No read-model queries; those live in ``ledger_kernel/selectors``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        """
        Args:
            session: SQLAlchemy session for database operations.
            clock: Time source for posted_at/voided_at (SystemClock by default).
        """
        self.session = session
        self.clock = clock or SystemClock()
