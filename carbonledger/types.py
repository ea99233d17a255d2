"""
Shared types for carbonledger.

These dataclasses and enums are the vocabulary between the registry, the
workflows, and the notifier. Gateways return untyped payloads; the
normalizer turns them into these types.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional, Union

# === Enums ===


class Category(str, Enum):
    """Footprint categories a user can record."""

    TRANSPORT = "transport"
    FOOD = "food"
    ENERGY = "energy"
    SHOPPING = "shopping"


VALID_CATEGORY_VALUES = frozenset(c.value for c in Category)


class CarbonLevel(str, Enum):
    """Severity bucket derived from a cleartext carbon value."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    VERY_HIGH = "Very High"
    UNKNOWN = "Unknown"  # Not verified and not decrypted this session


class TxStatus(str, Enum):
    """Transaction status kinds shown to the user."""

    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class SessionState(str, Enum):
    """Encryption session bootstrap states."""

    DISCONNECTED = "disconnected"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class DecryptionStage(str, Enum):
    """Steps of the decryption/verification workflow."""

    IDLE = "idle"
    CHECK_ON_CHAIN = "check_on_chain"
    REQUEST_PROOF = "request_proof"
    AWAIT_PROOF_AND_SUBMIT = "await_proof_and_submit"
    COMPLETE = "complete"


# === Records ===


@dataclass(frozen=True)
class Record:
    """One confidential carbon-footprint entry as seen by the client.

    ``business_key`` is the ledger's canonical identifier and the key used by
    the registry. ``id`` is a UI convenience only.
    """

    id: int
    business_key: str
    name: str
    category: Optional[Category]  # None when the ledger carries no description
    created_at: int  # unix seconds, set by the ledger
    creator: str
    public_value1: int = 0
    public_value2: int = 0
    is_verified: bool = False
    decrypted_value: Optional[int] = None
    level: CarbonLevel = CarbonLevel.UNKNOWN

    def with_decrypted_value(self, value: int) -> "Record":
        """Return a copy carrying a locally decrypted value and its level."""
        from carbonledger.levels import classify

        return replace(self, decrypted_value=value, level=classify(value))


@dataclass(frozen=True)
class Stats:
    """Summary statistics derived from a record set."""

    total_entries: int = 0
    verified_count: int = 0
    today_count: int = 0
    average_level: CarbonLevel = CarbonLevel.LOW


# === Notifications and history ===


@dataclass(frozen=True)
class TransactionStatus:
    """The single transaction status slot shown to the user."""

    visible: bool = False
    status: TxStatus = TxStatus.PENDING
    message: str = ""


HIDDEN_STATUS = TransactionStatus()


@dataclass(frozen=True)
class HistoryEntry:
    """One human-readable line of the operation history."""

    timestamp: datetime
    text: str

    def __str__(self) -> str:
        return f"{self.timestamp.strftime('%H:%M:%S')}: {self.text}"


# === Gateway values ===


@dataclass(frozen=True)
class EncryptedInput:
    """Ciphertext and input proof returned by the encryption gateway."""

    encrypted_data: bytes
    proof: bytes

    @classmethod
    def from_payload(cls, payload) -> "EncryptedInput":
        """Accept an EncryptedInput or an {encryptedData, proof} mapping."""
        if isinstance(payload, cls):
            return payload
        if isinstance(payload, dict):
            return cls(encrypted_data=payload["encryptedData"], proof=payload["proof"])
        return cls(encrypted_data=payload.encrypted_data, proof=payload.proof)


@dataclass
class ProofResult:
    """Result of a decryption-proof request.

    ``clear_values`` maps each requested handle to its cleartext integer.
    """

    clear_values: dict = field(default_factory=dict)
    encoded_clear_values: Optional[str] = None
    proof: Optional[str] = None


# === Creation form ===


@dataclass
class CreationForm:
    """Contents of the creation dialog, kept intact across failed attempts."""

    name: str = ""
    category: Category = Category.TRANSPORT
    carbon_value: Union[str, int] = ""  # as typed by the user

    def parsed_carbon_value(self) -> int:
        """Integer prefix of the typed value, 0 when there is none."""
        from carbonledger.normalizer import parse_leading_int

        value = parse_leading_int(self.carbon_value)
        return value if value is not None else 0
