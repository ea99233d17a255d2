"""
carbonledger Protocol Definitions
=================================

Interface contracts for the collaborators the orchestrator drives, and the
error taxonomy every workflow reports through.

Collaborators:
- LedgerReader:            read-only contract access (records, handles, availability)
- LedgerWriter:            signer-backed contract access (create, submit proof)
- PendingTransaction:      a submitted write awaiting confirmation
- EncryptionGateway:       homomorphic encryption of cleartext inputs
- DecryptionProofGateway:  off-chain decryption producing a verifiable proof
- SessionProvider:         wallet connection state and actor address

Error handling philosophy:
- Gateways raise whatever their transport raises; workflows translate at
  the boundary into CarbonLedgerError subclasses.
- Workflows never re-raise to their caller. They return a result object
  and publish a transaction status.
- AlreadyVerifiedError is a success signal, not a failure.
"""

from __future__ import annotations

from typing import (
    Any,
    Awaitable,
    Callable,
    Optional,
    Protocol,
    Sequence,
    runtime_checkable,
)

from carbonledger.types import EncryptedInput, ProofResult

# =============================================================================
# ERRORS
# =============================================================================


class CarbonLedgerError(Exception):
    """Base for all carbonledger errors."""

    code = "CARBONLEDGER_ERROR"


class NotConnectedError(CarbonLedgerError):
    """Raised when a workflow needs a wallet session and there is none."""

    code = "NOT_CONNECTED"


class EncryptionFailedError(CarbonLedgerError):
    """Raised when the encryption gateway cannot encrypt an input."""

    code = "ENCRYPTION_FAILED"


class SubmissionFailedError(CarbonLedgerError):
    """Raised when a ledger write cannot be submitted."""

    code = "SUBMISSION_FAILED"


class SubmissionRejectedByUserError(SubmissionFailedError):
    """Raised when the user declines to sign a ledger write."""

    code = "SUBMISSION_REJECTED_BY_USER"


class ConfirmationFailedError(CarbonLedgerError):
    """Raised when a submitted write never confirms."""

    code = "CONFIRMATION_FAILED"


class AlreadyVerifiedError(CarbonLedgerError):
    """Raised when a record was already verified on-chain.

    Recoverable: the decryption workflow reports it as a success.
    """

    code = "ALREADY_VERIFIED"


class DecryptionFailedError(CarbonLedgerError):
    """Raised when the decryption/verification flow fails."""

    code = "DECRYPTION_FAILED"


class LoadFailedError(CarbonLedgerError):
    """Raised when the record list cannot be fetched from the ledger."""

    code = "LOAD_FAILED"


class InitializationFailedError(CarbonLedgerError):
    """Raised when the encryption session cannot be initialized."""

    code = "INITIALIZATION_FAILED"


class OperationInProgressError(CarbonLedgerError):
    """Raised when a single-flight operation is already running."""

    code = "OPERATION_IN_PROGRESS"


class RecordNormalizationError(ValueError):
    """Raised when a ledger payload cannot be turned into a Record."""

    def __init__(self, business_key: str, reason: str):
        super().__init__(f"Malformed ledger record {business_key!r}: {reason}")
        self.business_key = business_key
        self.reason = reason


USER_REJECTION_MARKERS = ("user rejected", "user denied")
ALREADY_VERIFIED_MARKER = "already verified"


def is_user_rejection(exc: BaseException) -> bool:
    """True when a wallet/signing error means the user declined."""
    message = str(exc).lower()
    return any(marker in message for marker in USER_REJECTION_MARKERS)


def is_already_verified(exc: BaseException) -> bool:
    """True when a failure reason says the record is already verified."""
    if isinstance(exc, AlreadyVerifiedError):
        return True
    return ALREADY_VERIFIED_MARKER in str(exc).lower()


# =============================================================================
# COLLABORATOR PROTOCOLS
# =============================================================================


@runtime_checkable
class PendingTransaction(Protocol):
    """A submitted ledger write."""

    async def wait_for_confirmation(self) -> None:
        """Block until the write is confirmed. Raises on revert or drop."""
        ...


@runtime_checkable
class LedgerReader(Protocol):
    """Read-only access to the carbon footprint contract."""

    async def list_business_ids(self) -> Sequence[str]:
        """All business keys known to the contract."""
        ...

    async def get_business_data(self, business_key: str) -> Any:
        """Raw record payload (mapping or attribute object).

        Expected fields: name, timestamp, creator, publicValue1,
        publicValue2, isVerified, decryptedValue; optionally description.
        """
        ...

    async def get_encrypted_value_handle(self, business_key: str) -> str:
        """Opaque ciphertext handle for the record's encrypted value."""
        ...

    async def is_available(self) -> bool:
        """Contract liveness probe."""
        ...

    async def contract_address(self) -> str:
        """Address of the target contract."""
        ...


@runtime_checkable
class LedgerWriter(Protocol):
    """Signer-backed access to the carbon footprint contract."""

    async def create_record(
        self,
        business_key: str,
        name: str,
        encrypted_data: bytes,
        proof: bytes,
        public_value1: int,
        public_value2: int,
        description: str,
    ) -> PendingTransaction:
        """Submit a new encrypted record."""
        ...

    async def submit_decryption_proof(
        self,
        business_key: str,
        encoded_clear_values: str,
        proof: str,
    ) -> PendingTransaction:
        """Submit a decryption proof for on-chain verification."""
        ...


@runtime_checkable
class EncryptionGateway(Protocol):
    """Homomorphic encryption engine."""

    async def initialize(self) -> None:
        """Prepare the engine for the current session."""
        ...

    async def encrypt(
        self,
        target_contract: str,
        actor_address: str,
        clear_value: int,
    ) -> EncryptedInput:
        """Encrypt a cleartext integer for the target contract and actor."""
        ...


SubmitProof = Callable[[str, str], Awaitable[PendingTransaction]]


@runtime_checkable
class DecryptionProofGateway(Protocol):
    """Off-chain decryption producing a proof verifiable on-chain."""

    async def request_proof(
        self,
        handles: Sequence[str],
        target_contract: str,
        submit: SubmitProof,
    ) -> ProofResult:
        """Decrypt ``handles`` and hand ``(encoded_clear_values, proof)`` to
        ``submit`` for on-chain verification. Returns the clear values."""
        ...


@runtime_checkable
class SessionProvider(Protocol):
    """Wallet connection state."""

    @property
    def is_connected(self) -> bool: ...

    @property
    def address(self) -> Optional[str]: ...
