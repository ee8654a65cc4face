"""Pure domain values for the ledger kernel: DTOs, rate values, clock, money."""
