"""Summary statistics over a record set.

Read-only aggregation; the registry recomputes stats after every
successful refresh and nothing else mutates them.
"""

from datetime import date, datetime
from typing import Iterable, Optional

from carbonledger.levels import classify
from carbonledger.types import Record, Stats


def _local_day(timestamp: int) -> Optional[date]:
    try:
        return datetime.fromtimestamp(timestamp).date()
    except (OverflowError, OSError, ValueError):
        return None


def compute_stats(records: Iterable[Record], today: Optional[date] = None) -> Stats:
    """Derive Stats from records.

    Args:
        records: Current record set.
        today: Local calendar day used for ``today_count`` (defaults to now).

    Returns:
        Stats where ``average_level`` classifies the mean cleartext of the
        verified records with a known value, or 0 when there are none.
    """
    records = list(records)
    today = today or date.today()

    verified = [r for r in records if r.is_verified]
    known_values = [r.decrypted_value for r in verified if r.decrypted_value is not None]
    average = sum(known_values) / len(known_values) if known_values else 0

    return Stats(
        total_entries=len(records),
        verified_count=len(verified),
        today_count=sum(1 for r in records if _local_day(r.created_at) == today),
        average_level=classify(average),
    )
