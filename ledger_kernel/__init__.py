"""
Ledger Kernel

A double-entry personal ledger with:
- Typed accounts and derived (never stored) balances
- Atomic DRAFT -> POSTED posting of balanced transactions
- Status-filtered voiding with the original entries kept for audit
- Date-versioned statutory rate tables
"""

__version__ = "0.1.0"
