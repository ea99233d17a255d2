"""Record registry.

The authoritative snapshot of records visible to the client, keyed by
business key. A refresh builds a complete new snapshot before swapping it
in, so readers see either the old set or the new one and never a mix.
"""

import logging
from typing import Dict, List, Optional, Tuple

from carbonledger.history import OperationHistory
from carbonledger.normalizer import normalize_record
from carbonledger.notifier import TransactionNotifier
from carbonledger.protocols import LedgerReader, LoadFailedError
from carbonledger.stats import compute_stats
from carbonledger.types import Record, Stats

logger = logging.getLogger(__name__)

LOAD_FAILED_MESSAGE = "Failed to load data"


class RecordRegistry:
    """Refreshable snapshot of all records plus derived stats."""

    def __init__(
        self,
        reader: LedgerReader,
        notifier: TransactionNotifier,
        history: OperationHistory,
        key_prefix: Optional[str] = None,
    ):
        if key_prefix is None:
            from carbonledger.config import get_settings

            key_prefix = get_settings().business_key_prefix
        self._reader = reader
        self._notifier = notifier
        self._history = history
        self._key_prefix = key_prefix
        self._records: Dict[str, Record] = {}
        self._stats = Stats()
        self._refreshing = False
        # Cleartext from decryptions completed this session, by business key
        self._local_values: Dict[str, int] = {}

    # === Snapshot access ===

    @property
    def records(self) -> Tuple[Record, ...]:
        """Records in ledger order."""
        return tuple(self._records.values())

    @property
    def stats(self) -> Stats:
        return self._stats

    @property
    def refreshing(self) -> bool:
        return self._refreshing

    def get(self, business_key: str) -> Optional[Record]:
        return self._records.get(business_key)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, business_key: object) -> bool:
        return business_key in self._records

    # === Session-local decryptions ===

    def remember_decryption(self, business_key: str, value: int) -> None:
        """Keep a locally decrypted value for the rest of the session."""
        self._local_values[business_key] = value

    def local_value(self, business_key: str) -> Optional[int]:
        return self._local_values.get(business_key)

    # === Refresh ===

    async def refresh(self) -> List[Record]:
        """Reload every record from the ledger.

        A record whose detail fetch or normalization fails is logged and
        skipped. A call made while another refresh is running does nothing
        and returns the current snapshot.

        Raises:
            LoadFailedError: If the key list cannot be fetched. The previous
                snapshot is kept.
        """
        if self._refreshing:
            logger.debug("Refresh already in progress; skipping")
            return list(self._records.values())

        self._refreshing = True
        try:
            try:
                business_ids = list(await self._reader.list_business_ids())
            except Exception as exc:
                logger.error("Failed to list business ids: %s", exc)
                raise LoadFailedError(str(exc) or LOAD_FAILED_MESSAGE) from exc

            loaded: Dict[str, Record] = {}
            for raw_key in business_ids:
                key = str(raw_key)
                try:
                    payload = await self._reader.get_business_data(key)
                    loaded[key] = normalize_record(
                        key,
                        payload,
                        local_value=self._local_values.get(key),
                        key_prefix=self._key_prefix,
                    )
                except Exception as exc:
                    logger.warning("Skipping record %s: %s", key, exc)

            self._records = loaded
            self._stats = compute_stats(loaded.values())
            self._history.append(f"Loaded {len(loaded)} carbon footprints")
            logger.info("Loaded %d of %d records", len(loaded), len(business_ids))
            return list(loaded.values())
        finally:
            self._refreshing = False

    async def load(self) -> Optional[List[Record]]:
        """Refresh, reporting a failure as an error status instead of raising.

        Returns:
            The new records, or None if the refresh failed.
        """
        try:
            return await self.refresh()
        except LoadFailedError:
            self._notifier.error(LOAD_FAILED_MESSAGE)
            return None
