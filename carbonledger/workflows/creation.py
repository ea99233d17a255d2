"""Record creation workflow.

Steps, strictly in order; the first failure aborts the rest:

1. Generate a business key.
2. Encrypt the carbon value for the contract and actor.  -> EncryptionFailedError
3. Submit the ledger write.                               -> SubmissionFailedError
                                                             (SubmissionRejectedByUserError)
4. Await confirmation.                                    -> ConfirmationFailedError
5. Refresh the registry, record history, reset the form, close the dialog.

A record is either fully created or, from the caller's point of view, not
there at all. Failures leave the dialog open with the form intact.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from carbonledger.history import OperationHistory
from carbonledger.normalizer import describe_category
from carbonledger.notifier import TransactionNotifier
from carbonledger.protocols import (
    CarbonLedgerError,
    ConfirmationFailedError,
    EncryptionFailedError,
    EncryptionGateway,
    LedgerReader,
    LedgerWriter,
    NotConnectedError,
    PendingTransaction,
    SessionProvider,
    SubmissionFailedError,
    SubmissionRejectedByUserError,
    is_user_rejection,
)
from carbonledger.registry import RecordRegistry
from carbonledger.session import SessionBootstrap
from carbonledger.types import CreationForm, EncryptedInput

logger = logging.getLogger(__name__)

CONNECT_FIRST_MESSAGE = "Please connect wallet first"
SESSION_NOT_READY_MESSAGE = "Encryption session not ready, please connect wallet first"
REJECTED_MESSAGE = "Transaction rejected by user"


@dataclass
class CreationResult:
    """Outcome of one createRecord call."""

    success: bool
    business_key: Optional[str] = None
    message: str = ""
    error: Optional[CarbonLedgerError] = None

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error else None


def _reason(exc: BaseException) -> str:
    return str(exc) or "Unknown error"


def error_message(exc: CarbonLedgerError) -> str:
    """User-facing status text for a creation failure."""
    if isinstance(exc, SubmissionRejectedByUserError):
        return REJECTED_MESSAGE
    if isinstance(exc, SubmissionFailedError):
        return f"Submission failed: {_reason(exc)}"
    if isinstance(exc, EncryptionFailedError):
        return f"Encryption failed: {_reason(exc)}"
    if isinstance(exc, ConfirmationFailedError):
        return f"Confirmation failed: {_reason(exc)}"
    return _reason(exc)


class CreationWorkflow:
    """Encrypt -> submit -> confirm for a new record, plus the dialog state."""

    def __init__(
        self,
        reader: LedgerReader,
        writer: LedgerWriter,
        encryptor: EncryptionGateway,
        session: SessionProvider,
        bootstrap: SessionBootstrap,
        registry: RecordRegistry,
        notifier: TransactionNotifier,
        history: OperationHistory,
        key_prefix: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        if key_prefix is None:
            from carbonledger.config import get_settings

            key_prefix = get_settings().business_key_prefix
        self._reader = reader
        self._writer = writer
        self._encryptor = encryptor
        self._session = session
        self._bootstrap = bootstrap
        self._registry = registry
        self._notifier = notifier
        self._history = history
        self._key_prefix = key_prefix
        self._clock = clock
        self._last_key_ms = 0

        self.form = CreationForm()
        self.dialog_open = False
        self.is_creating = False

    # === Dialog state ===

    def open_dialog(self) -> None:
        self.dialog_open = True

    def close_dialog(self) -> None:
        self.dialog_open = False

    # === Keys ===

    def generate_business_key(self) -> str:
        """Time-derived key, strictly increasing within this client."""
        now_ms = int(self._clock() * 1000)
        key_ms = max(now_ms, self._last_key_ms + 1)
        self._last_key_ms = key_ms
        return f"{self._key_prefix}{key_ms}"

    # === Workflow ===

    async def create_record(
        self,
        form: Optional[CreationForm] = None,
        actor_address: Optional[str] = None,
    ) -> CreationResult:
        """Create a record from ``form`` (defaults to the dialog's form).

        Never raises; failures are reported through the notifier and the
        returned CreationResult.
        """
        form = form if form is not None else self.form
        address = actor_address or self._session.address

        if not self._session.is_connected or not address:
            return self._fail(NotConnectedError(CONNECT_FIRST_MESSAGE))
        if not self._bootstrap.is_ready:
            return self._fail(NotConnectedError(SESSION_NOT_READY_MESSAGE))

        self.is_creating = True
        self._notifier.pending("Creating carbon footprint with FHE encryption...")
        business_key = None
        try:
            business_key = self.generate_business_key()
            logger.debug("Creating record %s", business_key)

            encrypted = await self._encrypt(address, form)
            tx = await self._submit(business_key, form, encrypted)

            self._notifier.pending("Waiting for transaction confirmation...")
            await self._confirm(tx)
        except CarbonLedgerError as exc:
            logger.warning("Creating record %s failed: %s", business_key, exc)
            return self._fail(exc, business_key)
        finally:
            self.is_creating = False

        await self._registry.load()
        self._history.append(f"Created footprint: {form.name}")
        if form is self.form:
            self.form = CreationForm()
        self.close_dialog()
        message = "Carbon footprint created successfully!"
        self._notifier.success(message)
        logger.info("Created record %s", business_key)
        return CreationResult(success=True, business_key=business_key, message=message)

    async def _encrypt(self, address: str, form: CreationForm) -> EncryptedInput:
        try:
            value = form.parsed_carbon_value()
            contract = await self._reader.contract_address()
            payload = await self._encryptor.encrypt(contract, address, value)
            return EncryptedInput.from_payload(payload)
        except Exception as exc:
            raise EncryptionFailedError(str(exc)) from exc

    async def _submit(
        self,
        business_key: str,
        form: CreationForm,
        encrypted: EncryptedInput,
    ) -> PendingTransaction:
        try:
            return await self._writer.create_record(
                business_key,
                form.name,
                encrypted.encrypted_data,
                encrypted.proof,
                0,
                0,
                describe_category(form.category),
            )
        except Exception as exc:
            if is_user_rejection(exc):
                raise SubmissionRejectedByUserError(str(exc)) from exc
            raise SubmissionFailedError(str(exc)) from exc

    async def _confirm(self, tx: PendingTransaction) -> None:
        try:
            await tx.wait_for_confirmation()
        except Exception as exc:
            if is_user_rejection(exc):
                raise SubmissionRejectedByUserError(str(exc)) from exc
            raise ConfirmationFailedError(str(exc)) from exc

    def _fail(
        self,
        exc: CarbonLedgerError,
        business_key: Optional[str] = None,
    ) -> CreationResult:
        message = error_message(exc)
        self._notifier.error(message)
        return CreationResult(
            success=False,
            business_key=business_key,
            message=message,
            error=exc,
        )
