"""
In-memory ledger.

Implements both LedgerReader and LedgerWriter against a dict, for tests and
local development. Writes take effect when their pending transaction is
confirmed, the way a contract call lands only once mined.
"""

import hashlib
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_CONTRACT_ADDRESS = "0x00000000000000000000000000000000c0ffee00"
DEFAULT_SIGNER = "0x000000000000000000000000000000000000a11ce"

ABI_WORD_HEX = 64  # 32 bytes


class LedgerError(Exception):
    """Raised by the in-memory ledger for contract-level reverts."""

    pass


def encode_clear_values(values: Sequence[int]) -> str:
    """ABI-encode unsigned integers as consecutive 32-byte words."""
    return "0x" + "".join(format(int(v), "064x") for v in values)


def decode_clear_value(encoded: Any) -> int:
    """First ABI word of ``encoded`` as an unsigned integer."""
    if isinstance(encoded, int):
        return encoded
    if isinstance(encoded, (bytes, bytearray)):
        return int.from_bytes(bytes(encoded[:32]), "big")
    text = str(encoded)
    if text.startswith(("0x", "0X")):
        text = text[2:]
    if not text:
        raise LedgerError("Empty clear value payload")
    try:
        return int(text[:ABI_WORD_HEX], 16)
    except ValueError as exc:
        raise LedgerError(f"Invalid clear value payload: {encoded!r}") from exc


@dataclass
class StoredRecord:
    """One record as the contract stores it."""

    business_key: str
    name: str
    timestamp: int
    creator: str
    handle: str
    encrypted_data: Any = None
    input_proof: Any = None
    public_value1: int = 0
    public_value2: int = 0
    description: str = ""
    is_verified: bool = False
    decrypted_value: int = 0

    def to_payload(self) -> Dict[str, Any]:
        """Shape returned by ``getBusinessData``."""
        return {
            "name": self.name,
            "timestamp": self.timestamp,
            "creator": self.creator,
            "publicValue1": self.public_value1,
            "publicValue2": self.public_value2,
            "isVerified": self.is_verified,
            "decryptedValue": self.decrypted_value,
            "description": self.description,
        }


class InMemoryPendingTransaction:
    """A write that lands when confirmed."""

    def __init__(
        self,
        tx_hash: str,
        apply: Callable[[], None],
        failure: Optional[BaseException] = None,
    ):
        self.tx_hash = tx_hash
        self._apply = apply
        self._failure = failure
        self.confirmed = False

    async def wait_for_confirmation(self) -> None:
        if self.confirmed:
            return
        if self._failure is not None:
            raise self._failure
        self._apply()
        self.confirmed = True


@dataclass
class InMemoryLedger:
    """Dict-backed carbon footprint contract."""

    address: str = DEFAULT_CONTRACT_ADDRESS
    signer: str = DEFAULT_SIGNER
    available: bool = True
    clock: Callable[[], float] = time.time
    records: Dict[str, StoredRecord] = field(default_factory=dict)
    calls: List[str] = field(default_factory=list)
    # operation name -> exception raised once by that operation
    failures: Dict[str, BaseException] = field(default_factory=dict)
    # business key -> exception raised by every get_business_data for it
    read_failures: Dict[str, BaseException] = field(default_factory=dict)
    _tx_count: int = field(default=0, init=False, repr=False)

    # === Test helpers ===

    def fail_once(self, operation: str, exc: BaseException) -> None:
        """Make the next call of ``operation`` raise ``exc``.

        Operations: list_business_ids, get_business_data,
        get_encrypted_value_handle, is_available, contract_address,
        create_record, submit_decryption_proof, confirm.
        """
        self.failures[operation] = exc

    def seed(
        self,
        business_key: str,
        name: str = "",
        timestamp: Optional[int] = None,
        creator: Optional[str] = None,
        description: str = "",
        is_verified: bool = False,
        decrypted_value: int = 0,
    ) -> StoredRecord:
        """Insert a record directly, bypassing encryption and confirmation."""
        record = StoredRecord(
            business_key=business_key,
            name=name,
            timestamp=int(self.clock()) if timestamp is None else timestamp,
            creator=creator or self.signer,
            handle=self._handle_for(business_key),
            description=description,
            is_verified=is_verified,
            decrypted_value=decrypted_value if is_verified else 0,
        )
        self.records[business_key] = record
        return record

    def _handle_for(self, business_key: str) -> str:
        return "0x" + hashlib.sha256(f"{self.address}:{business_key}".encode("utf-8")).hexdigest()

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        exc = self.failures.pop(operation, None)
        if exc is not None:
            raise exc

    def _next_tx_hash(self) -> str:
        self._tx_count += 1
        return "0x" + format(self._tx_count, "064x")

    def _get(self, business_key: str) -> StoredRecord:
        record = self.records.get(business_key)
        if record is None:
            raise LedgerError(f"Business data not found: {business_key}")
        return record

    # === LedgerReader ===

    async def list_business_ids(self) -> List[str]:
        self._check("list_business_ids")
        return list(self.records)

    async def get_business_data(self, business_key: str) -> Dict[str, Any]:
        self._check("get_business_data")
        if business_key in self.read_failures:
            raise self.read_failures[business_key]
        return self._get(business_key).to_payload()

    async def get_encrypted_value_handle(self, business_key: str) -> str:
        self._check("get_encrypted_value_handle")
        return self._get(business_key).handle

    async def is_available(self) -> bool:
        self._check("is_available")
        return self.available

    async def contract_address(self) -> str:
        self._check("contract_address")
        return self.address

    # === LedgerWriter ===

    async def create_record(
        self,
        business_key: str,
        name: str,
        encrypted_data: Any,
        proof: Any,
        public_value1: int,
        public_value2: int,
        description: str,
    ) -> InMemoryPendingTransaction:
        self._check("create_record")
        if business_key in self.records:
            raise LedgerError("Business data already exists")

        def apply() -> None:
            if business_key in self.records:
                raise LedgerError("Business data already exists")
            self.records[business_key] = StoredRecord(
                business_key=business_key,
                name=name,
                timestamp=int(self.clock()),
                creator=self.signer,
                handle=self._handle_for(business_key),
                encrypted_data=encrypted_data,
                input_proof=proof,
                public_value1=public_value1,
                public_value2=public_value2,
                description=description,
            )
            logger.debug("Ledger stored %s", business_key)

        return InMemoryPendingTransaction(
            self._next_tx_hash(), apply, self.failures.pop("confirm", None)
        )

    async def submit_decryption_proof(
        self,
        business_key: str,
        encoded_clear_values: str,
        proof: str,
    ) -> InMemoryPendingTransaction:
        self._check("submit_decryption_proof")
        if self._get(business_key).is_verified:
            raise LedgerError("Data already verified")
        value = decode_clear_value(encoded_clear_values)

        def apply() -> None:
            record = self._get(business_key)
            if record.is_verified:
                raise LedgerError("Data already verified")
            record.is_verified = True
            record.decrypted_value = value

        return InMemoryPendingTransaction(
            self._next_tx_hash(), apply, self.failures.pop("confirm", None)
        )
