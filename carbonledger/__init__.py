"""
carbonledger - confidential carbon-footprint records on an FHE ledger.

Values are encrypted before they reach the ledger and revealed only
through a decryption proof that the contract verifies.
"""

from .core import CarbonLedger
from .levels import classify
from .types import CarbonLevel, Category, CreationForm, Record, Stats, TxStatus

try:
    from importlib.metadata import version

    __version__ = version("carbonledger")
except Exception:
    __version__ = "0.0.0"

__all__ = [
    "CarbonLedger",
    "CarbonLevel",
    "Category",
    "CreationForm",
    "Record",
    "Stats",
    "TxStatus",
    "classify",
]
