"""Transaction status notifier.

A single-slot status channel shared by every workflow. Publishing a status
overwrites the slot, notifies subscribers, and schedules an auto-dismiss on
the running event loop. A newer publish cancels the older dismiss timer, and
each timer also carries the sequence number it was scheduled for, so a stale
timer can never hide a newer status.
"""

import asyncio
import logging
from typing import Callable, List, Optional

from carbonledger.types import HIDDEN_STATUS, TransactionStatus, TxStatus

logger = logging.getLogger(__name__)

Subscriber = Callable[[TransactionStatus], None]


class TransactionNotifier:
    """Publish/subscribe channel for the one visible transaction status."""

    def __init__(
        self,
        success_delay: Optional[float] = None,
        error_delay: Optional[float] = None,
        pending_delay: Optional[float] = None,
        settings=None,
    ):
        if settings is None:
            from carbonledger.config import get_settings

            settings = get_settings()
        if success_delay is None:
            success_delay = settings.success_dismiss_seconds
        if error_delay is None:
            error_delay = settings.error_dismiss_seconds
        if pending_delay is None:
            pending_delay = settings.pending_dismiss_seconds
        self._delays = {
            TxStatus.SUCCESS: success_delay,
            TxStatus.ERROR: error_delay,
            TxStatus.PENDING: pending_delay,  # None = until superseded
        }
        self._current: TransactionStatus = HIDDEN_STATUS
        self._subscribers: List[Subscriber] = []
        self._seq = 0
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def current(self) -> TransactionStatus:
        """The status currently in the slot."""
        return self._current

    @property
    def sequence(self) -> int:
        """Number of publishes so far."""
        return self._seq

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback for every slot change. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, status: TxStatus, message: str) -> TransactionStatus:
        """Overwrite the slot and schedule its auto-dismiss."""
        status = TxStatus(status)
        self._seq += 1
        self._cancel_timer()
        self._set(TransactionStatus(visible=True, status=status, message=message))

        delay = self._delays.get(status)
        if delay is not None:
            self._schedule_dismiss(delay, self._seq)
        return self._current

    # show() is the name the workflows read best with
    show = publish

    def pending(self, message: str) -> TransactionStatus:
        return self.publish(TxStatus.PENDING, message)

    def success(self, message: str) -> TransactionStatus:
        return self.publish(TxStatus.SUCCESS, message)

    def error(self, message: str) -> TransactionStatus:
        return self.publish(TxStatus.ERROR, message)

    def hide(self) -> None:
        """Clear the slot immediately."""
        self._cancel_timer()
        if self._current.visible:
            self._set(HIDDEN_STATUS)

    def _schedule_dismiss(self, delay: float, seq: int) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; status %d will not auto-dismiss", seq)
            return
        self._timer = loop.call_later(delay, self._expire, seq)

    def _expire(self, seq: int) -> None:
        if seq != self._seq:
            return  # superseded
        self._timer = None
        self._set(HIDDEN_STATUS)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _set(self, status: TransactionStatus) -> None:
        self._current = status
        for callback in list(self._subscribers):
            try:
                callback(status)
            except Exception:
                # One broken subscriber must not block the others
                logger.exception("Transaction status subscriber failed")
