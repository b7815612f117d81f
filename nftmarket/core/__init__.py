"""Core building blocks: hashing, units, errors and the transaction ledger."""
