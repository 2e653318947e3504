"""Ledger store: SQLite connection, per-table managers and the DataLocker."""
