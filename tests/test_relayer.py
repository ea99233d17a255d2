"""Tests for the HTTP relayer proof gateway."""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from carbonledger.ledger import encode_clear_values
from carbonledger.protocols import DecryptionFailedError
from carbonledger.relayer import (
    PUBLIC_DECRYPT_PATH,
    HttpRelayerProofGateway,
    ProofRequestError,
    _parse_clear_values,
)

RELAYER = "https://relayer.example/"
CONTRACT = "0x00000000000000000000000000000000c0ffee00"
HANDLE = "0x" + "ab" * 32


def _relayer_reply(clear_values, encoded="0xenc", proof="0xproof"):
    return {
        "clearValues": clear_values,
        "abiEncodedClearValues": encoded,
        "decryptionProof": proof,
    }


class TestConstruction:
    def test_requires_url(self, settings):
        with pytest.raises(ValueError, match="relayer URL"):
            HttpRelayerProofGateway(settings=settings)

    def test_url_and_timeout_from_settings(self, settings):
        settings.relayer_url = RELAYER
        settings.relayer_timeout_seconds = 5.0
        gateway = HttpRelayerProofGateway(settings=settings)
        assert gateway.endpoint == "https://relayer.example" + PUBLIC_DECRYPT_PATH
        assert gateway.timeout == 5.0


class TestParseClearValues:
    def test_mapping(self):
        assert _parse_clear_values({HANDLE: "37"}, [HANDLE]) == {HANDLE: 37}

    def test_list_in_request_order(self):
        assert _parse_clear_values(["0x25"], [HANDLE]) == {HANDLE: 37}

    def test_leading_zero_decimal(self):
        assert _parse_clear_values(["037"], [HANDLE]) == {HANDLE: 37}

    def test_length_mismatch(self):
        with pytest.raises(ProofRequestError):
            _parse_clear_values([1, 2], [HANDLE])

    def test_missing(self):
        with pytest.raises(ProofRequestError):
            _parse_clear_values(None, [HANDLE])

    def test_non_integer(self):
        with pytest.raises(ProofRequestError):
            _parse_clear_values({HANDLE: "lots"}, [HANDLE])


class TestRequestProof:
    @pytest.mark.asyncio
    async def test_submits_encoding_and_proof(self):
        gateway = HttpRelayerProofGateway(relayer_url=RELAYER, timeout=1.0)
        submit = AsyncMock()

        with patch(
            "carbonledger.relayer._relayer_call",
            new_callable=AsyncMock,
            return_value=_relayer_reply({HANDLE: 37}),
        ) as mock_call:
            result = await gateway.request_proof([HANDLE], CONTRACT, submit)

        submit.assert_awaited_once_with("0xenc", "0xproof")
        assert result.clear_values == {HANDLE: 37}
        assert result.proof == "0xproof"
        args, kwargs = mock_call.call_args
        assert args[0] == gateway.endpoint
        assert args[1] == {"handles": [HANDLE], "contractAddress": CONTRACT}

    @pytest.mark.asyncio
    async def test_missing_proof_does_not_submit(self):
        gateway = HttpRelayerProofGateway(relayer_url=RELAYER, timeout=1.0)
        submit = AsyncMock()

        with patch(
            "carbonledger.relayer._relayer_call",
            new_callable=AsyncMock,
            return_value=_relayer_reply({HANDLE: 37}, proof=None),
        ):
            with pytest.raises(ProofRequestError):
                await gateway.request_proof([HANDLE], CONTRACT, submit)

        submit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_submit_errors_propagate_unchanged(self):
        gateway = HttpRelayerProofGateway(relayer_url=RELAYER, timeout=1.0)
        submit = AsyncMock(side_effect=RuntimeError("Data already verified"))

        with patch(
            "carbonledger.relayer._relayer_call",
            new_callable=AsyncMock,
            return_value=_relayer_reply({HANDLE: 37}),
        ):
            with pytest.raises(RuntimeError, match="already verified"):
                await gateway.request_proof([HANDLE], CONTRACT, submit)

    @pytest.mark.asyncio
    async def test_over_http(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json=_relayer_reply([37], encoded=encode_clear_values([37])),
            )

        gateway = HttpRelayerProofGateway(
            relayer_url=RELAYER, timeout=1.0, transport=httpx.MockTransport(handler)
        )
        submit = AsyncMock()

        result = await gateway.request_proof([HANDLE], CONTRACT, submit)

        assert result.clear_values == {HANDLE: 37}
        assert seen[0].url.path == PUBLIC_DECRYPT_PATH
        assert json.loads(seen[0].content) == {"handles": [HANDLE], "contractAddress": CONTRACT}
        submit.assert_awaited_once_with(encode_clear_values([37]), "0xproof")

    @pytest.mark.asyncio
    async def test_http_error_wrapped(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(503))
        gateway = HttpRelayerProofGateway(relayer_url=RELAYER, timeout=1.0, transport=transport)

        with pytest.raises(ProofRequestError) as exc_info:
            await gateway.request_proof([HANDLE], CONTRACT, AsyncMock())

        assert isinstance(exc_info.value, DecryptionFailedError)
        assert exc_info.value.code == "PROOF_REQUEST_FAILED"

    @pytest.mark.asyncio
    async def test_relayer_error_body(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"error": "handle not allowed"})
        )
        gateway = HttpRelayerProofGateway(relayer_url=RELAYER, timeout=1.0, transport=transport)

        with pytest.raises(ProofRequestError, match="handle not allowed"):
            await gateway.request_proof([HANDLE], CONTRACT, AsyncMock())


class TestThroughClient:
    @pytest.mark.asyncio
    async def test_decrypts_over_http(self, ledger, encryptor, session, settings):
        from carbonledger import CarbonLedger

        ledger.seed("carbon-1", name="Commute")
        handle = ledger.records["carbon-1"].handle

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json=_relayer_reply({handle: "8"}, encoded=encode_clear_values([8])),
            )

        gateway = HttpRelayerProofGateway(
            relayer_url=RELAYER, timeout=1.0, transport=httpx.MockTransport(handler)
        )
        client = CarbonLedger(ledger, ledger, encryptor, gateway, session, settings=settings)

        outcome = await client.decrypt_record("carbon-1")

        assert outcome.value == 8
        assert client.registry.get("carbon-1").decrypted_value == 8
