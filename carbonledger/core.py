"""
CarbonLedger - the client-side orchestrator.

Wires the collaborators (ledger, encryption engine, decryption relayer,
wallet session) to the registry, the notifier, the history and both
lifecycle workflows. The hosting UI calls ``connect()`` whenever the wallet
session changes and reads everything else off this object.
"""

import logging
from typing import List, Optional, Tuple

from carbonledger.config import CarbonLedgerSettings, get_settings
from carbonledger.history import OperationHistory
from carbonledger.notifier import TransactionNotifier
from carbonledger.protocols import (
    DecryptionProofGateway,
    EncryptionGateway,
    LedgerReader,
    LedgerWriter,
    SessionProvider,
)
from carbonledger.registry import RecordRegistry
from carbonledger.session import SessionBootstrap
from carbonledger.types import (
    CreationForm,
    HistoryEntry,
    Record,
    SessionState,
    Stats,
    TransactionStatus,
)
from carbonledger.workflows import (
    CreationResult,
    CreationWorkflow,
    DecryptionOutcome,
    DecryptionWorkflow,
)

logger = logging.getLogger(__name__)


class CarbonLedger:
    """Confidential carbon-footprint client.

    Args:
        reader: Read-only contract gateway.
        writer: Signer-backed contract gateway.
        encryptor: Homomorphic encryption engine.
        proof_gateway: Decryption-proof gateway.
        session: Wallet session provider.
        settings: Overrides for the environment-derived settings.
    """

    def __init__(
        self,
        reader: LedgerReader,
        writer: LedgerWriter,
        encryptor: EncryptionGateway,
        proof_gateway: DecryptionProofGateway,
        session: SessionProvider,
        settings: Optional[CarbonLedgerSettings] = None,
    ):
        self.settings = settings or get_settings()
        self._reader = reader
        self._session = session

        self.notifier = TransactionNotifier(settings=self.settings)
        self.history = OperationHistory(capacity=self.settings.history_capacity)
        self.registry = RecordRegistry(
            reader,
            self.notifier,
            self.history,
            key_prefix=self.settings.business_key_prefix,
        )
        self.bootstrap = SessionBootstrap(encryptor, self.notifier, self.history)
        self.creation = CreationWorkflow(
            reader,
            writer,
            encryptor,
            session,
            self.bootstrap,
            self.registry,
            self.notifier,
            self.history,
            key_prefix=self.settings.business_key_prefix,
        )
        self.decryption = DecryptionWorkflow(
            reader,
            writer,
            proof_gateway,
            session,
            self.registry,
            self.notifier,
            self.history,
        )

        self.loading = True
        self.contract_address: Optional[str] = None
        self.selected: Optional[Record] = None
        self.decrypted_value: Optional[int] = None

    # === Read-only views ===

    @property
    def records(self) -> Tuple[Record, ...]:
        return self.registry.records

    @property
    def stats(self) -> Stats:
        return self.registry.stats

    @property
    def status(self) -> TransactionStatus:
        return self.notifier.current

    @property
    def history_entries(self) -> List[HistoryEntry]:
        return self.history.entries

    @property
    def session_state(self) -> SessionState:
        return self.bootstrap.state

    @property
    def is_refreshing(self) -> bool:
        return self.registry.refreshing

    @property
    def is_decrypting(self) -> bool:
        return self.decryption.is_decrypting

    # === Session ===

    async def connect(self) -> None:
        """React to the current wallet session.

        Initializes the encryption session, loads the records and discovers
        the contract address. Safe to call on every session change.
        """
        connected = self._session.is_connected
        await self.bootstrap.on_session_change(connected)

        if not connected:
            self.selected = None
            self.decrypted_value = None
            self.loading = False
            return

        try:
            await self.load_data()
            self.contract_address = await self._reader.contract_address()
        except Exception as exc:
            logger.error("Failed to load contract address: %s", exc)
        finally:
            self.loading = False

    async def load_data(self) -> Optional[List[Record]]:
        """Refresh the registry. Returns None when disconnected or on failure."""
        if not self._session.is_connected:
            return None
        return await self.registry.load()

    # === Creation ===

    def open_create_dialog(self) -> None:
        self.creation.open_dialog()

    def close_create_dialog(self) -> None:
        self.creation.close_dialog()

    @property
    def form(self) -> CreationForm:
        return self.creation.form

    async def create_record(
        self,
        form: Optional[CreationForm] = None,
        actor_address: Optional[str] = None,
    ) -> CreationResult:
        return await self.creation.create_record(form, actor_address)

    # === Decryption ===

    async def decrypt_record(self, business_key: str) -> DecryptionOutcome:
        return await self.decryption.decrypt_record(business_key)

    async def decrypt_and_select(self, record: Record) -> DecryptionOutcome:
        """Decrypt ``record`` and select it with its cleartext and level."""
        outcome = await self.decrypt_record(record.business_key)
        value = outcome.value if outcome.value is not None else outcome.stored_value
        if value is not None:
            current = self.registry.get(record.business_key) or record
            self.decrypted_value = value
            self.selected = current.with_decrypted_value(value)
        return outcome

    # === Diagnostics ===

    async def check_availability(self) -> bool:
        """Probe the contract and report the result as a status."""
        try:
            available = await self._reader.is_available()
        except Exception as exc:
            logger.warning("Contract availability check failed: %s", exc)
            self.notifier.error("Contract test failed")
            return False

        if available:
            self.notifier.success("Contract is available and working!")
            self.history.append("Tested contract availability - Success")
        else:
            self.notifier.error("Contract is not available")
        return bool(available)
