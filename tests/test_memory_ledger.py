"""Tests for the in-memory ledger."""

import pytest

from carbonledger.ledger import (
    InMemoryLedger,
    LedgerError,
    decode_clear_value,
    encode_clear_values,
)
from carbonledger.protocols import LedgerReader, LedgerWriter


class TestClearValueCodec:
    def test_encode_pads_to_words(self):
        encoded = encode_clear_values([37, 1])
        assert encoded.startswith("0x")
        assert len(encoded) == 2 + 2 * 64
        assert encoded.endswith("1")

    def test_decode_first_word(self):
        assert decode_clear_value(encode_clear_values([37, 99])) == 37

    def test_decode_bytes_and_int(self):
        assert decode_clear_value((42).to_bytes(32, "big")) == 42
        assert decode_clear_value(7) == 7

    @pytest.mark.parametrize("payload", ["0x", "0xnothex"])
    def test_decode_rejects_garbage(self, payload):
        with pytest.raises(LedgerError):
            decode_clear_value(payload)


class TestInMemoryLedger:
    def test_satisfies_protocols(self, ledger):
        assert isinstance(ledger, LedgerReader)
        assert isinstance(ledger, LedgerWriter)

    @pytest.mark.asyncio
    async def test_create_lands_on_confirmation(self, ledger):
        tx = await ledger.create_record("carbon-1", "Commute", "E", "P", 0, 0, "Carbon footprint: transport")
        assert await ledger.list_business_ids() == []

        await tx.wait_for_confirmation()

        assert await ledger.list_business_ids() == ["carbon-1"]
        data = await ledger.get_business_data("carbon-1")
        assert data["name"] == "Commute"
        assert data["isVerified"] is False
        assert data["timestamp"] == 1_760_000_000

    @pytest.mark.asyncio
    async def test_duplicate_key_rejected(self, ledger):
        ledger.seed("carbon-1")
        with pytest.raises(LedgerError, match="already exists"):
            await ledger.create_record("carbon-1", "x", "E", "P", 0, 0, "")

    @pytest.mark.asyncio
    async def test_handles_are_stable_per_contract(self, ledger):
        ledger.seed("carbon-1")
        other = InMemoryLedger(address="0x" + "ab" * 20)
        other.seed("carbon-1")

        handle = await ledger.get_encrypted_value_handle("carbon-1")
        assert handle == await ledger.get_encrypted_value_handle("carbon-1")
        assert handle != await other.get_encrypted_value_handle("carbon-1")

    @pytest.mark.asyncio
    async def test_submit_proof_verifies(self, ledger):
        ledger.seed("carbon-1")
        tx = await ledger.submit_decryption_proof("carbon-1", encode_clear_values([12]), "0xproof")
        await tx.wait_for_confirmation()

        data = await ledger.get_business_data("carbon-1")
        assert data["isVerified"] is True
        assert data["decryptedValue"] == 12

    @pytest.mark.asyncio
    async def test_submit_proof_twice_reverts(self, ledger):
        ledger.seed("carbon-1", is_verified=True, decrypted_value=5)
        with pytest.raises(LedgerError, match="already verified"):
            await ledger.submit_decryption_proof("carbon-1", encode_clear_values([5]), "0xproof")

    @pytest.mark.asyncio
    async def test_verified_between_submit_and_confirm(self, ledger):
        ledger.seed("carbon-1")
        tx = await ledger.submit_decryption_proof("carbon-1", encode_clear_values([5]), "0xproof")
        ledger.records["carbon-1"].is_verified = True

        with pytest.raises(LedgerError, match="already verified"):
            await tx.wait_for_confirmation()

    @pytest.mark.asyncio
    async def test_unknown_key(self, ledger):
        with pytest.raises(LedgerError, match="not found"):
            await ledger.get_business_data("carbon-404")

    @pytest.mark.asyncio
    async def test_fail_once(self, ledger):
        ledger.fail_once("is_available", RuntimeError("timeout"))

        with pytest.raises(RuntimeError):
            await ledger.is_available()
        assert await ledger.is_available() is True
        assert ledger.calls == ["is_available", "is_available"]

    @pytest.mark.asyncio
    async def test_confirm_failure_leaves_state_untouched(self, ledger):
        ledger.fail_once("confirm", LedgerError("reverted"))
        tx = await ledger.create_record("carbon-1", "x", "E", "P", 0, 0, "")

        with pytest.raises(LedgerError, match="reverted"):
            await tx.wait_for_confirmation()
        assert ledger.records == {}

    def test_seed_drops_value_of_unverified_record(self, ledger):
        record = ledger.seed("carbon-1", decrypted_value=9)
        assert record.decrypted_value == 0
        assert record.to_payload()["decryptedValue"] == 0
