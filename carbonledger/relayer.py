"""HTTP relayer decryption-proof gateway.

Asks a decryption relayer to publicly decrypt ciphertext handles:
1. POST the handles and target contract to the relayer
2. Read back the clear values, their ABI encoding and the KMS proof
3. Hand the encoding and proof to the caller's submit callback, which
   verifies them on-chain
"""

import logging
from typing import Any, Dict, Optional, Sequence

import httpx

from carbonledger.protocols import DecryptionFailedError, SubmitProof
from carbonledger.types import ProofResult

logger = logging.getLogger(__name__)

PUBLIC_DECRYPT_PATH = "/v1/public-decrypt"


class ProofRequestError(DecryptionFailedError):
    """Raised when the relayer cannot produce a decryption proof."""

    code = "PROOF_REQUEST_FAILED"


async def _relayer_call(
    url: str,
    payload: dict,
    timeout: float = 30.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    """POST a JSON request to the relayer and return the decoded body."""
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        response = await client.post(
            url,
            json=payload,
            headers={"Content-Type": "application/json"},
        )
        response.raise_for_status()
        result = response.json()

    if not isinstance(result, dict):
        raise ProofRequestError(f"Unexpected relayer response: {result!r}")
    if result.get("error"):
        raise ProofRequestError(f"Relayer error: {result['error']}")
    return result


def _parse_clear_values(raw: Any, handles: Sequence[str]) -> Dict[str, int]:
    """Clear values keyed by handle.

    Relayers answer either with a handle -> value mapping or with a list in
    request order.
    """
    if isinstance(raw, dict):
        items = raw.items()
    elif isinstance(raw, list):
        if len(raw) != len(handles):
            raise ProofRequestError(
                f"Relayer returned {len(raw)} values for {len(handles)} handles"
            )
        items = zip(handles, raw)
    else:
        raise ProofRequestError("Relayer response has no clear values")

    values = {}
    for handle, value in items:
        try:
            if isinstance(value, str) and value.lower().startswith("0x"):
                values[handle] = int(value, 16)
            else:
                values[handle] = int(value)
        except (TypeError, ValueError) as exc:
            raise ProofRequestError(f"Non-integer clear value for {handle}: {value!r}") from exc
    return values


class HttpRelayerProofGateway:
    """DecryptionProofGateway backed by an HTTP relayer."""

    def __init__(
        self,
        relayer_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        settings=None,
    ):
        if relayer_url is None or timeout is None:
            if settings is None:
                from carbonledger.config import get_settings

                settings = get_settings()
            relayer_url = relayer_url or settings.relayer_url
            timeout = timeout if timeout is not None else settings.relayer_timeout_seconds
        if not relayer_url:
            raise ValueError("A relayer URL is required (CARBONLEDGER_RELAYER_URL)")
        self.relayer_url = relayer_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.relayer_url}{PUBLIC_DECRYPT_PATH}"

    async def request_proof(
        self,
        handles: Sequence[str],
        target_contract: str,
        submit: SubmitProof,
    ) -> ProofResult:
        """Decrypt ``handles`` through the relayer and submit the proof.

        Raises:
            ProofRequestError: If the relayer fails or answers malformed data.
            Exception: Whatever ``submit`` raises, unchanged.
        """
        handles = list(handles)
        logger.debug("Requesting decryption proof for %d handle(s)", len(handles))
        try:
            result = await _relayer_call(
                self.endpoint,
                {"handles": handles, "contractAddress": target_contract},
                timeout=self.timeout,
                transport=self._transport,
            )
        except httpx.HTTPError as exc:
            raise ProofRequestError(f"Relayer request failed: {exc}") from exc

        clear_values = _parse_clear_values(result.get("clearValues"), handles)
        encoded = result.get("abiEncodedClearValues")
        proof = result.get("decryptionProof")
        if not encoded or not proof:
            raise ProofRequestError("Relayer response is missing the encoded values or proof")

        await submit(encoded, proof)

        return ProofResult(
            clear_values=clear_values,
            encoded_clear_values=encoded,
            proof=proof,
        )
