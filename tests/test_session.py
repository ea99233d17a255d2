"""Tests for the encryption session bootstrap."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from carbonledger.session import INIT_FAILED_MESSAGE, SessionBootstrap
from carbonledger.types import SessionState, TxStatus


@pytest.fixture
def bootstrap(encryptor, notifier, history):
    return SessionBootstrap(encryptor, notifier, history)


class TestSessionBootstrap:
    def test_starts_disconnected(self, bootstrap):
        assert bootstrap.state == SessionState.DISCONNECTED
        assert bootstrap.is_ready is False

    @pytest.mark.asyncio
    async def test_connect_initializes_once(self, bootstrap, encryptor, history):
        assert await bootstrap.on_session_change(True) == SessionState.READY
        assert await bootstrap.on_session_change(True) == SessionState.READY

        encryptor.initialize.assert_awaited_once()
        assert [e.text for e in history.entries] == ["FHE session initialized"]

    @pytest.mark.asyncio
    async def test_disconnected_trigger_does_nothing(self, bootstrap, encryptor):
        assert await bootstrap.on_session_change(False) == SessionState.DISCONNECTED
        encryptor.initialize.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_concurrent_triggers_start_one_initialization(self, bootstrap, encryptor):
        gate = asyncio.Event()

        async def slow_init():
            await gate.wait()

        encryptor.initialize = AsyncMock(side_effect=slow_init)

        first = asyncio.create_task(bootstrap.on_session_change(True))
        await asyncio.sleep(0)
        assert bootstrap.state == SessionState.INITIALIZING

        # Re-entry while initializing is a no-op
        assert await bootstrap.on_session_change(True) == SessionState.INITIALIZING

        gate.set()
        assert await first == SessionState.READY
        assert encryptor.initialize.await_count == 1

    @pytest.mark.asyncio
    async def test_failure_reports_error_and_allows_retry(self, bootstrap, encryptor, notifier, history):
        encryptor.initialize = AsyncMock(side_effect=[RuntimeError("wasm load failed"), None])

        assert await bootstrap.on_session_change(True) == SessionState.FAILED
        assert notifier.current.status == TxStatus.ERROR
        assert notifier.current.message == INIT_FAILED_MESSAGE
        assert bootstrap.last_error is not None
        assert bootstrap.last_error.code == "INITIALIZATION_FAILED"
        assert len(history) == 0

        # The next eligible trigger retries
        assert await bootstrap.on_session_change(True) == SessionState.READY
        assert bootstrap.last_error is None
        assert encryptor.initialize.await_count == 2

    @pytest.mark.asyncio
    async def test_disconnect_resets_for_next_session(self, bootstrap, encryptor):
        await bootstrap.on_session_change(True)
        await bootstrap.on_session_change(False)
        assert bootstrap.state == SessionState.DISCONNECTED

        await bootstrap.on_session_change(True)
        assert encryptor.initialize.await_count == 2

    @pytest.mark.asyncio
    async def test_disconnect_during_initialization_does_not_become_ready(self, bootstrap, encryptor):
        gate = asyncio.Event()

        async def slow_init():
            await gate.wait()

        encryptor.initialize = AsyncMock(side_effect=slow_init)

        task = asyncio.create_task(bootstrap.on_session_change(True))
        await asyncio.sleep(0)
        bootstrap.reset()
        gate.set()

        assert await task == SessionState.DISCONNECTED
        assert bootstrap.is_ready is False
