"""Network capabilities used by the ledger core."""
