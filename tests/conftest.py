"""
Pytest fixtures and test configuration for carbonledger tests.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest

from carbonledger.config import CarbonLedgerSettings
from carbonledger.core import CarbonLedger
from carbonledger.history import OperationHistory
from carbonledger.ledger import InMemoryLedger, encode_clear_values
from carbonledger.notifier import TransactionNotifier
from carbonledger.registry import RecordRegistry
from carbonledger.types import ProofResult

ACTOR = "0x1111111111111111111111111111111111111111"
FIXED_NOW = 1_760_000_000.0


@dataclass
class FakeSession:
    """Wallet session the tests can flip."""

    is_connected: bool = True
    address: Optional[str] = ACTOR


class FakeProofGateway:
    """Decryption-proof gateway resolving handles through a callable.

    Submits the ABI-encoded clear values through the caller's callback, the
    way a real relayer SDK does, and records every request.
    """

    def __init__(self, resolve: Callable[[str], int] = lambda handle: 0):
        self.resolve = resolve
        self.requests: List[Tuple[List[str], str]] = []

    async def request_proof(self, handles: Sequence[str], target_contract: str, submit):
        handles = list(handles)
        self.requests.append((handles, target_contract))
        values: Dict[str, int] = {h: self.resolve(h) for h in handles}
        await submit(encode_clear_values(list(values.values())), "0xdecryptionproof")
        return ProofResult(clear_values=values)


@pytest.fixture
def settings():
    """Settings with short auto-dismiss delays and no .env lookup."""
    return CarbonLedgerSettings(
        _env_file=None,
        success_dismiss_seconds=0.05,
        error_dismiss_seconds=0.08,
        history_capacity=10,
    )


@pytest.fixture
def ledger():
    """In-memory ledger with a frozen clock."""
    return InMemoryLedger(clock=lambda: FIXED_NOW)


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def encryptor():
    """Mock encryption gateway returning a fixed ciphertext."""
    mock = MagicMock()
    mock.initialize = AsyncMock(return_value=None)
    mock.encrypt = AsyncMock(return_value={"encryptedData": "E", "proof": "P"})
    return mock


@pytest.fixture
def proof_gateway():
    return FakeProofGateway()


@pytest.fixture
def notifier(settings):
    return TransactionNotifier(settings=settings)


@pytest.fixture
def history():
    return OperationHistory(capacity=10)


@pytest.fixture
def registry(ledger, notifier, history):
    return RecordRegistry(ledger, notifier, history, key_prefix="carbon-")


@pytest.fixture
def client(ledger, encryptor, proof_gateway, session, settings):
    """Fully wired CarbonLedger over the in-memory ledger."""
    return CarbonLedger(ledger, ledger, encryptor, proof_gateway, session, settings=settings)
