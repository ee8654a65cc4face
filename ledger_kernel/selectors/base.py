"""
Module: ledger_kernel.selectors.base
Responsibility: Base class for read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Selectors never add, delete, flush or commit.
    - Selectors return frozen DTOs, not ORM instances.
    - The caller owns the session and its transaction scope.

Audit relevance:
    Balances are derived here from ledger entries on every call.  Nothing
    is cached between calls, so a read always reflects the committed
    (or the caller's own uncommitted) entries.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Accept a Session from the caller, run read-only queries, return DTOs.
    """

    def __init__(self, session: Session):
        self.session = session
