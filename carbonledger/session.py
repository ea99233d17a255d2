"""Encryption session bootstrap.

State machine::

    DISCONNECTED -> INITIALIZING -> READY
                         |
                         v
                       FAILED -> INITIALIZING (on the next trigger)

Triggers come from the session provider (connect, reconnect). Nothing is
retried on a timer. Triggers that arrive while INITIALIZING or READY are
no-ops, so concurrent connect events start at most one initialization.
"""

import logging
from typing import Optional

from carbonledger.history import OperationHistory
from carbonledger.notifier import TransactionNotifier
from carbonledger.protocols import EncryptionGateway, InitializationFailedError
from carbonledger.types import SessionState

logger = logging.getLogger(__name__)

INIT_FAILED_MESSAGE = "FHE initialization failed"


class SessionBootstrap:
    """Initializes the encryption engine once per connected session."""

    def __init__(
        self,
        encryptor: EncryptionGateway,
        notifier: TransactionNotifier,
        history: OperationHistory,
    ):
        self._encryptor = encryptor
        self._notifier = notifier
        self._history = history
        self._state = SessionState.DISCONNECTED
        self._generation = 0  # bumped on disconnect
        self.last_error: Optional[InitializationFailedError] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state == SessionState.READY

    def reset(self) -> None:
        """Forget the session (wallet disconnected)."""
        if self._state != SessionState.DISCONNECTED:
            logger.debug("Session reset from %s", self._state.value)
        self._generation += 1
        self._state = SessionState.DISCONNECTED

    async def on_session_change(self, connected: bool) -> SessionState:
        """Drive the state machine from the current connection state."""
        if not connected:
            self.reset()
            return self._state
        if self._state in (SessionState.INITIALIZING, SessionState.READY):
            return self._state
        return await self._initialize()

    async def _initialize(self) -> SessionState:
        generation = self._generation
        self._state = SessionState.INITIALIZING
        logger.debug("Initializing encryption session")

        try:
            await self._encryptor.initialize()
        except Exception as exc:
            if generation != self._generation:
                return self._state
            self.last_error = InitializationFailedError(str(exc) or INIT_FAILED_MESSAGE)
            self._state = SessionState.FAILED
            logger.error("Encryption session initialization failed: %s", exc)
            self._notifier.error(INIT_FAILED_MESSAGE)
            return self._state

        if generation != self._generation:
            # Disconnected while initializing; the next connect starts over
            return self._state

        self.last_error = None
        self._state = SessionState.READY
        self._history.append("FHE session initialized")
        logger.info("Encryption session ready")
        return self._state
