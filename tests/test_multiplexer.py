from __future__ import annotations

import asyncio

import pytest
from conftest import FakeTransport

from mavconf._multiplexer import MavlinkMultiplexer
from mavconf.client import MavconfClient
from mavconf.config import MavconfConfig
from mavconf.exceptions import MavconfConnectionClosedError, MavconfError
from mavconf.models import Heartbeat, MessageType, ParamRequestList, ParamValue, StatusText


def _text(text: str) -> StatusText:
    return StatusText(severity=6, text=text)


@pytest.mark.asyncio
async def test_recurring_subscription_receives_in_arrival_order(config: MavconfConfig, fake: FakeTransport) -> None:
    async with MavconfClient(config, transport=fake) as client:
        stream = client.subscribe(MessageType.STATUSTEXT)
        fake.feed(_text("one"), Heartbeat(), _text("two"), _text("three"))

        received = [await asyncio.wait_for(stream.get(), 1.0) for _ in range(3)]

    assert [m.text for m in received] == ["one", "two", "three"]


@pytest.mark.asyncio
async def test_frames_queued_before_the_loop_reads_reach_a_fresh_subscriber(
    config: MavconfConfig, fake: FakeTransport
) -> None:
    async with MavconfClient(config, transport=fake) as client:
        # Subscribe and make the reply available in the same step; the
        # registration must win over the read.
        stream = client.subscribe(MessageType.PARAM_VALUE)
        fake.feed(ParamValue(param_id="A", param_value=1.0, param_count=1))

        message = await asyncio.wait_for(stream.get(), 1.0)

    assert isinstance(message, ParamValue)
    assert message.param_id == "A"


@pytest.mark.asyncio
async def test_several_subscribers_of_one_type_each_get_every_message(
    config: MavconfConfig, fake: FakeTransport
) -> None:
    async with MavconfClient(config, transport=fake) as client:
        first = client.subscribe(MessageType.STATUSTEXT)
        second = client.subscribe(MessageType.STATUSTEXT)
        fake.feed(_text("a"), _text("b"))

        got_first = [(await asyncio.wait_for(first.get(), 1.0)).text for _ in range(2)]
        got_second = [(await asyncio.wait_for(second.get(), 1.0)).text for _ in range(2)]

    assert got_first == got_second == ["a", "b"]


@pytest.mark.asyncio
async def test_closed_stream_yields_nothing_and_is_dropped(config: MavconfConfig, fake: FakeTransport) -> None:
    async with MavconfClient(config, transport=fake) as client:
        mux = client.multiplexer
        stream = client.subscribe(MessageType.STATUSTEXT)
        fake.feed(_text("before"))
        assert (await asyncio.wait_for(stream.get(), 1.0)).text == "before"

        stream.close()
        fake.feed(_text("after"))
        await fake.drained()

        assert mux._registry.count() == 0  # type: ignore[attr-defined]
        with pytest.raises(MavconfError):
            await stream.get()
        assert [m async for m in stream] == []


@pytest.mark.asyncio
async def test_async_with_closes_the_stream(config: MavconfConfig, fake: FakeTransport) -> None:
    async with MavconfClient(config, transport=fake) as client:
        async with client.subscribe(MessageType.HEARTBEAT) as stream:
            assert not stream.closed
        assert stream.closed


@pytest.mark.asyncio
async def test_request_delivers_exactly_one_message(config: MavconfConfig, fake: FakeTransport) -> None:
    async with MavconfClient(config, transport=fake) as client:
        mux = client.multiplexer
        waiter = asyncio.create_task(mux.request(MessageType.HEARTBEAT))
        await asyncio.sleep(0.01)
        fake.feed(Heartbeat(custom_mode=1), Heartbeat(custom_mode=2))

        message = await asyncio.wait_for(waiter, 1.0)
        await fake.drained()

        assert isinstance(message, Heartbeat)
        assert message.custom_mode == 1
        assert MessageType.HEARTBEAT not in mux._registry.entries  # type: ignore[attr-defined]


@pytest.mark.asyncio
async def test_abandoned_request_is_swept(config: MavconfConfig, fake: FakeTransport) -> None:
    async with MavconfClient(config, transport=fake) as client:
        mux = client.multiplexer
        with pytest.raises(TimeoutError):
            await asyncio.wait_for(mux.request(MessageType.PARAM_VALUE), 0.02)

        # No PARAM_VALUE ever arrives, so only the periodic sweep can drop it.
        await asyncio.sleep(config.sweep_interval * 3)
        assert mux._registry.count() == 0  # type: ignore[attr-defined]


@pytest.mark.asyncio
async def test_heartbeat_updates_liveness(config: MavconfConfig, fake: FakeTransport) -> None:
    async with MavconfClient(config, transport=fake) as client:
        assert client.multiplexer.last_heartbeat is None
        fake.feed(Heartbeat())
        await fake.drained()
        assert client.multiplexer.last_heartbeat is not None


@pytest.mark.asyncio
async def test_is_alive_false_without_heartbeat(config: MavconfConfig, fake: FakeTransport) -> None:
    async with MavconfClient(config, transport=fake) as client:
        loop = asyncio.get_running_loop()
        started = loop.time()
        assert await client.is_alive(0.05) is False
        assert loop.time() - started >= 0.04


@pytest.mark.asyncio
async def test_is_alive_true_when_heartbeat_arrives(config: MavconfConfig, fake: FakeTransport) -> None:
    async with MavconfClient(config, transport=fake) as client:
        loop = asyncio.get_running_loop()
        loop.call_later(0.02, fake.feed, Heartbeat())
        assert await client.is_alive(1.0) is True


@pytest.mark.asyncio
async def test_unmodelled_frames_are_discarded(config: MavconfConfig, fake: FakeTransport) -> None:
    async with MavconfClient(config, transport=fake) as client:
        stream = client.subscribe(MessageType.STATUSTEXT)
        fake.feed(None, None, _text("still here"))

        message = await asyncio.wait_for(stream.get(), 1.0)

        assert message.text == "still here"
        assert client.multiplexer.is_running


@pytest.mark.asyncio
async def test_read_failure_fails_pending_and_later_operations(config: MavconfConfig, fake: FakeTransport) -> None:
    async with MavconfClient(config, transport=fake) as client:
        mux = client.multiplexer
        stream = client.subscribe(MessageType.STATUSTEXT)
        pending = asyncio.create_task(mux.request(MessageType.PARAM_VALUE))
        await asyncio.sleep(0.01)

        fake.feed(_text("last words"))
        fake.fail(OSError("device unplugged"))

        # Messages that arrived before the failure are still delivered.
        assert (await asyncio.wait_for(stream.get(), 1.0)).text == "last words"
        with pytest.raises(MavconfConnectionClosedError):
            await asyncio.wait_for(stream.get(), 1.0)
        with pytest.raises(MavconfConnectionClosedError):
            await asyncio.wait_for(pending, 1.0)

        assert not mux.is_running
        assert mux.failure is not None
        with pytest.raises(MavconfConnectionClosedError):
            mux.send(ParamRequestList())
        with pytest.raises(MavconfConnectionClosedError):
            mux.subscribe(MessageType.HEARTBEAT)
        with pytest.raises(MavconfConnectionClosedError):
            await client.is_alive(0.01)


@pytest.mark.asyncio
async def test_run_cannot_start_twice(fake: FakeTransport) -> None:
    mux = MavlinkMultiplexer(fake, poll_interval=0.001)
    task = asyncio.create_task(mux.run())
    await asyncio.sleep(0.01)
    try:
        with pytest.raises(MavconfError):
            await mux.run()
    finally:
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
    assert mux.failure is not None


@pytest.mark.asyncio
async def test_subscription_posted_before_start_is_registered(fake: FakeTransport) -> None:
    mux = MavlinkMultiplexer(fake, poll_interval=0.001)
    stream = mux.subscribe(MessageType.STATUSTEXT)
    fake.feed(_text("early"))

    task = asyncio.create_task(mux.run())
    try:
        assert (await asyncio.wait_for(stream.get(), 1.0)).text == "early"
    finally:
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
