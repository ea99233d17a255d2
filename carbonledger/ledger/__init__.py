"""Ledger gateways.

- InMemoryLedger: dict-backed LedgerReader + LedgerWriter for tests and
  local development
"""

from carbonledger.ledger.memory import (
    InMemoryLedger,
    InMemoryPendingTransaction,
    LedgerError,
    StoredRecord,
    decode_clear_value,
    encode_clear_values,
)

__all__ = [
    "InMemoryLedger",
    "InMemoryPendingTransaction",
    "LedgerError",
    "StoredRecord",
    "decode_clear_value",
    "encode_clear_values",
]
