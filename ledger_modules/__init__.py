"""
Feature modules built on the ledger kernel.

Modules own their ORM tables and their commit boundary; they reach the
ledger only through kernel services and selectors.  The kernel never
imports from here except through ``_orm_registry`` at table creation.
"""
