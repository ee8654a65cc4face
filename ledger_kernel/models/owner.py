"""
Module: ledger_kernel.models.owner
Responsibility: The identity that accounts, transactions, employers and
    income records belong to.  Credentials live elsewhere; this row only anchors
    foreign keys so that deleting an owner cascades to their data.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from datetime import datetime

from sqlalchemy import DateTime, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base


class Owner(Base):
    """
    Owner of accounts, transactions and payroll records.

    Contract:
        Referenced with ON DELETE CASCADE by every owner-scoped table.

    Non-goals:
        - No authentication data.  The identity is validated by the caller.
    """

    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
    )

    email: Mapped[str] = mapped_column(String(255), nullable=False)

    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Owner {self.email}>"
