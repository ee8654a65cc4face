"""
Module ORM Registry (``ledger_modules._orm_registry``).

Responsibility
--------------
Ensure every SQLAlchemy ORM model is imported so that ``Base.metadata``
contains its table before ``create_tables()`` runs.

Architecture position
---------------------
**Modules layer** -- utility.  Imported lazily by
``ledger_kernel.db.engine.create_tables``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``ledger_modules.*.orm`` module.

    Kernel tables are registered first because module tables reference
    them (users, accounts, transactions).

    This function is idempotent -- repeated calls are harmless.
    """
    import ledger_kernel.models  # noqa: F401
    import ledger_modules.income.orm  # noqa: F401
