"""Decryption / verification workflow.

Stages, strictly in order::

    CHECK_ON_CHAIN -> REQUEST_PROOF -> AWAIT_PROOF_AND_SUBMIT -> COMPLETE

A record that is already verified short-circuits at CHECK_ON_CHAIN. If
another actor verifies the record while the proof is in flight, the
"already verified" failure is reported as a success and the registry is
reloaded. Only one decryption runs at a time, whichever record it targets.
It does not wait for the encryption session bootstrap: proofs come from
the relayer and never touch the local encryption engine.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

from carbonledger.history import OperationHistory
from carbonledger.normalizer import parse_business_data
from carbonledger.notifier import TransactionNotifier
from carbonledger.protocols import (
    CarbonLedgerError,
    DecryptionFailedError,
    DecryptionProofGateway,
    LedgerReader,
    LedgerWriter,
    NotConnectedError,
    OperationInProgressError,
    PendingTransaction,
    SessionProvider,
    is_already_verified,
)
from carbonledger.registry import RecordRegistry
from carbonledger.types import DecryptionStage, ProofResult
from carbonledger.workflows.creation import CONNECT_FIRST_MESSAGE

logger = logging.getLogger(__name__)

BUSY_MESSAGE = "A decryption is already in progress"


@dataclass
class DecryptionOutcome:
    """Outcome of one decryptRecord call.

    ``value`` is the cleartext produced by this call, or None when no new
    value was produced (already verified, or failure). ``stored_value``
    carries the on-chain cleartext of an already verified record.
    """

    success: bool
    business_key: str
    value: Optional[int] = None
    stored_value: Optional[int] = None
    already_verified: bool = False
    message: str = ""
    error: Optional[CarbonLedgerError] = None

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error else None


def _coerce_proof_result(result: Any) -> ProofResult:
    if isinstance(result, ProofResult):
        return result
    if isinstance(result, Mapping):
        inner = result.get("decryptionResult", result)
        return ProofResult(clear_values=dict(inner.get("clearValues") or {}))
    raise DecryptionFailedError(f"Unexpected proof gateway result: {result!r}")


def _clear_value_for(clear_values: Mapping, handle: Any) -> Optional[int]:
    """Clear value for ``handle``; hex handles match case-insensitively."""
    if handle in clear_values:
        raw = clear_values[handle]
    else:
        wanted = str(handle).lower()
        matches = [v for k, v in clear_values.items() if str(k).lower() == wanted]
        if not matches:
            return None
        raw = matches[0]
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise DecryptionFailedError(f"Non-integer clear value: {raw!r}") from exc


class DecryptionWorkflow:
    """Check on-chain -> request proof -> submit proof -> confirm."""

    def __init__(
        self,
        reader: LedgerReader,
        writer: LedgerWriter,
        proof_gateway: DecryptionProofGateway,
        session: SessionProvider,
        registry: RecordRegistry,
        notifier: TransactionNotifier,
        history: OperationHistory,
    ):
        self._reader = reader
        self._writer = writer
        self._proof_gateway = proof_gateway
        self._session = session
        self._registry = registry
        self._notifier = notifier
        self._history = history
        self._decrypting = False
        self.stage = DecryptionStage.IDLE

    @property
    def is_decrypting(self) -> bool:
        return self._decrypting

    async def decrypt_record(self, business_key: str) -> DecryptionOutcome:
        """Decrypt and verify one record. Never raises."""
        if not self._session.is_connected or not self._session.address:
            return self._fail(business_key, NotConnectedError(CONNECT_FIRST_MESSAGE))
        if self._decrypting:
            logger.debug("Rejecting decryption of %s: another one is running", business_key)
            return self._fail(business_key, OperationInProgressError(BUSY_MESSAGE))

        self._decrypting = True
        try:
            return await self._run(business_key)
        except Exception as exc:
            if is_already_verified(exc):
                logger.info("Record %s was verified concurrently", business_key)
                await self._registry.load()
                message = "Data is already verified on-chain"
                self._notifier.success(message)
                return DecryptionOutcome(
                    success=True,
                    business_key=business_key,
                    already_verified=True,
                    message=message,
                )
            logger.error("Decrypting record %s failed at %s: %s", business_key, self.stage.value, exc)
            error = exc if isinstance(exc, DecryptionFailedError) else DecryptionFailedError(str(exc))
            return self._fail(business_key, error)
        finally:
            self._decrypting = False
            self.stage = DecryptionStage.IDLE

    async def _run(self, business_key: str) -> DecryptionOutcome:
        self.stage = DecryptionStage.CHECK_ON_CHAIN
        data = parse_business_data(business_key, await self._reader.get_business_data(business_key))
        if data.is_verified:
            message = "Data already verified on-chain"
            self._notifier.success(message)
            return DecryptionOutcome(
                success=True,
                business_key=business_key,
                stored_value=data.decrypted_value,
                already_verified=True,
                message=message,
            )

        self.stage = DecryptionStage.REQUEST_PROOF
        handle = await self._reader.get_encrypted_value_handle(business_key)
        contract = await self._reader.contract_address()

        async def submit(encoded_clear_values: str, proof: str) -> PendingTransaction:
            self.stage = DecryptionStage.AWAIT_PROOF_AND_SUBMIT
            self._notifier.pending("Verifying decryption on-chain...")
            tx = await self._writer.submit_decryption_proof(business_key, encoded_clear_values, proof)
            await tx.wait_for_confirmation()
            return tx

        result = _coerce_proof_result(
            await self._proof_gateway.request_proof([handle], contract, submit)
        )

        self.stage = DecryptionStage.COMPLETE
        value = _clear_value_for(result.clear_values, handle)
        if value is None:
            raise DecryptionFailedError(f"No clear value returned for handle {handle}")

        self._registry.remember_decryption(business_key, value)
        await self._registry.load()
        self._history.append(f"Decrypted carbon value: {value}")
        message = "Carbon data decrypted successfully!"
        self._notifier.success(message)
        return DecryptionOutcome(
            success=True,
            business_key=business_key,
            value=value,
            message=message,
        )

    def _fail(self, business_key: str, exc: CarbonLedgerError) -> DecryptionOutcome:
        if isinstance(exc, DecryptionFailedError):
            message = f"Decryption failed: {str(exc) or 'Unknown error'}"
        else:
            message = str(exc)
        self._notifier.error(message)
        return DecryptionOutcome(
            success=False,
            business_key=business_key,
            message=message,
            error=exc,
        )
