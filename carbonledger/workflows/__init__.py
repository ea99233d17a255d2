"""Record lifecycle workflows.

Workflows:
- CreationWorkflow: encrypt -> submit -> confirm for a new record
- DecryptionWorkflow: check on-chain -> request proof -> submit proof -> confirm

Results:
- CreationResult
- DecryptionOutcome
"""

from carbonledger.workflows.creation import CreationResult, CreationWorkflow
from carbonledger.workflows.decryption import DecryptionOutcome, DecryptionWorkflow

__all__ = [
    "CreationWorkflow",
    "CreationResult",
    "DecryptionWorkflow",
    "DecryptionOutcome",
]
