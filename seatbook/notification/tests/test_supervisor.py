"""
Unit tests for the stream supervisor: reconnect state machine, backoff
schedule and cancellation.
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

from seatbook.error_handling.exceptions import RetryExhaustedError
from seatbook.notification.model import ConnectionState
from seatbook.notification.service.supervisor import StreamSupervisor


@pytest.fixture
def hooks():
    return {
        "on_message": Mock(),
        "on_auth_failure": AsyncMock(),
        "on_failed": AsyncMock(),
    }


@pytest_asyncio.fixture
async def supervisor(stream_client, session_store, recording_sleep, hooks):
    supervisor = StreamSupervisor(stream_client, session_store, sleep=recording_sleep, **hooks)
    yield supervisor
    await supervisor.stop()


class TestConnect:
    """Test opening the stream."""

    @pytest.mark.asyncio
    async def test_open_reaches_connected(self, supervisor, stream_client):
        states = []
        supervisor.add_state_listener(states.append)

        await supervisor.start()
        assert supervisor.state == ConnectionState.CONNECTING

        await stream_client.latest.open()

        assert supervisor.state == ConnectionState.CONNECTED
        assert states == [ConnectionState.CONNECTING, ConnectionState.CONNECTED]
        assert supervisor.attempts == 0

    @pytest.mark.asyncio
    async def test_messages_are_forwarded(self, supervisor, stream_client, hooks, make_notification):
        await supervisor.start()
        await stream_client.latest.open()
        notification = make_notification(1)

        await stream_client.latest.push(notification)

        hooks["on_message"].assert_called_once_with(notification)

    @pytest.mark.asyncio
    async def test_start_without_token(self, supervisor, stream_client, session_store, hooks):
        session_store.clear_session()

        await supervisor.start()

        assert stream_client.connections == []
        assert supervisor.state == ConnectionState.ERROR
        hooks["on_auth_failure"].assert_awaited_once()

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_stream(self, supervisor, stream_client):
        await supervisor.start()
        await supervisor.start()
        assert len(stream_client.connections) == 1


class TestReconnect:
    """Test the reconnection policy."""

    @pytest.mark.asyncio
    async def test_backoff_schedule_then_failed(self, supervisor, stream_client, recording_sleep, hooks, settle):
        await supervisor.start()
        await stream_client.latest.open()

        for _ in range(5):
            await stream_client.latest.fail()
            assert supervisor.state == ConnectionState.RECONNECTING
            await settle()
            assert supervisor.state == ConnectionState.CONNECTING

        assert recording_sleep.delays == [2, 4, 8, 16, 32]
        assert len(stream_client.connections) == 6

        await stream_client.latest.fail()
        await settle()

        assert supervisor.state == ConnectionState.FAILED
        assert recording_sleep.delays == [2, 4, 8, 16, 32]
        assert len(stream_client.connections) == 6
        hooks["on_failed"].assert_awaited_once()
        assert isinstance(hooks["on_failed"].await_args.args[0], RetryExhaustedError)
        assert isinstance(supervisor.last_error, RetryExhaustedError)

    @pytest.mark.asyncio
    async def test_success_resets_backoff(self, supervisor, stream_client, recording_sleep, settle):
        await supervisor.start()
        for _ in range(3):
            await stream_client.latest.fail()
            await settle()
        assert supervisor.attempts == 3

        await stream_client.latest.open()
        assert supervisor.attempts == 0

        await stream_client.latest.fail()
        assert supervisor.next_delay == 2
        assert supervisor.attempts == 1

    @pytest.mark.asyncio
    async def test_fourth_attempt_waits_sixteen_seconds(self, supervisor, stream_client, settle):
        await supervisor.start()
        for _ in range(3):
            await stream_client.latest.fail()
            await settle()

        await stream_client.latest.fail()

        assert supervisor.next_delay == 16
        assert supervisor.attempts == 4

    @pytest.mark.asyncio
    async def test_no_retry_without_token(self, supervisor, stream_client, session_store,
                                          recording_sleep, hooks, settle):
        await supervisor.start()
        await stream_client.latest.open()
        session_store.clear_session()

        await stream_client.latest.fail()
        await settle()

        assert supervisor.state == ConnectionState.ERROR
        assert recording_sleep.delays == []
        assert len(stream_client.connections) == 1
        hooks["on_auth_failure"].assert_awaited_once()

    @pytest.mark.asyncio
    async def test_previous_stream_closed_before_reconnect(self, supervisor, stream_client, settle):
        await supervisor.start()
        first = stream_client.latest

        await first.fail()
        await settle()

        assert first.closed is True
        assert stream_client.latest is not first
        assert stream_client.overlapping_connects == 0

    @pytest.mark.asyncio
    async def test_non_terminal_error_is_ignored(self, supervisor, stream_client, recording_sleep):
        await supervisor.start()
        await stream_client.latest.open()

        await stream_client.latest.fail("hiccup", terminal=False)

        assert supervisor.state == ConnectionState.CONNECTED
        assert recording_sleep.delays == []


class TestStop:
    """Test explicit close."""

    @pytest.mark.asyncio
    async def test_stop_closes_stream(self, supervisor, stream_client):
        await supervisor.start()
        await stream_client.latest.open()

        await supervisor.stop()

        assert stream_client.latest.closed is True
        assert supervisor.state == ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_reconnect(self, stream_client, session_store, hooks):
        sleeping = asyncio.Event()

        async def blocking_sleep(delay):
            sleeping.set()
            await asyncio.Event().wait()

        supervisor = StreamSupervisor(stream_client, session_store, sleep=blocking_sleep, **hooks)
        await supervisor.start()
        await stream_client.latest.fail()
        await sleeping.wait()

        await supervisor.stop()
        await asyncio.sleep(0)

        assert len(stream_client.connections) == 1
        assert supervisor.state == ConnectionState.DISCONNECTED
        assert supervisor.next_delay is None

    @pytest.mark.asyncio
    async def test_callbacks_after_stop_are_ignored(self, supervisor, stream_client, hooks,
                                                    recording_sleep, make_notification):
        await supervisor.start()
        connection = stream_client.latest
        await supervisor.stop()

        await connection.push(make_notification(1))
        await connection.fail()

        hooks["on_message"].assert_not_called()
        assert recording_sleep.delays == []
        assert supervisor.state == ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_restart_after_failure(self, supervisor, stream_client, settle):
        await supervisor.start()
        for _ in range(6):
            await stream_client.latest.fail()
            await settle()
        assert supervisor.state == ConnectionState.FAILED

        await supervisor.start()

        assert supervisor.state == ConnectionState.CONNECTING
        assert supervisor.attempts == 0
