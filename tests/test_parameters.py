from __future__ import annotations

import asyncio

import pytest
from conftest import FakeTransport, vehicle

from mavconf._api.parameters import fetch_parameters, read_parameter, set_parameter
from mavconf.client import MavconfClient
from mavconf.config import MavconfConfig
from mavconf.exceptions import MavconfProtocolTimeout
from mavconf.models import (
    MavBaseModel,
    Parameter,
    ParamRequestList,
    ParamRequestRead,
    ParamSet,
    ParamValue,
)
from mavconf.models._base import to_float32


@pytest.mark.asyncio
async def test_fetch_collects_every_parameter(config: MavconfConfig) -> None:
    fake = FakeTransport(vehicle({"THR_MIN": 0.1, "ARMING_CHECK": 1.0, "BATT_CAPACITY": 3300.0}))
    progress: list[tuple[int, int]] = []

    async with MavconfClient(config, transport=fake) as client:
        snapshot = await client.fetch_parameters(on_progress=lambda done, total: progress.append((done, total)))

    assert list(snapshot) == ["ARMING_CHECK", "BATT_CAPACITY", "THR_MIN"]
    assert snapshot["THR_MIN"] == to_float32(0.1)
    assert progress == [(1, 3), (2, 3), (3, 3)]
    assert isinstance(fake.sent[0], ParamRequestList)


@pytest.mark.asyncio
async def test_fetch_counts_distinct_names_not_replies(config: MavconfConfig) -> None:
    replies = [ParamValue(param_id="A", param_value=float(i), param_count=2) for i in range(5)]
    replies.append(ParamValue(param_id="B", param_value=9.0, param_count=2))
    fake = FakeTransport(lambda msg: replies if isinstance(msg, ParamRequestList) else [])

    async with MavconfClient(config, transport=fake) as client:
        snapshot = await client.fetch_parameters()

    assert dict(snapshot) == {"A": 4.0, "B": 9.0}


@pytest.mark.asyncio
async def test_fetch_tolerates_out_of_order_replies(config: MavconfConfig) -> None:
    replies = [
        ParamValue(param_id="C", param_value=3.0, param_count=3, param_index=2),
        ParamValue(param_id="A", param_value=1.0, param_count=3, param_index=0),
        ParamValue(param_id="B", param_value=2.0, param_count=3, param_index=1),
    ]
    fake = FakeTransport(lambda msg: replies if isinstance(msg, ParamRequestList) else [])

    async with MavconfClient(config, transport=fake) as client:
        snapshot = await client.fetch_parameters()

    assert list(snapshot.items()) == [("A", 1.0), ("B", 2.0), ("C", 3.0)]


@pytest.mark.asyncio
async def test_fetch_waits_for_the_largest_declared_total(config: MavconfConfig) -> None:
    replies = [
        ParamValue(param_id="A", param_value=1.0, param_count=2),
        ParamValue(param_id="B", param_value=2.0, param_count=3),
        ParamValue(param_id="C", param_value=3.0, param_count=2),
    ]
    fake = FakeTransport(lambda msg: replies if isinstance(msg, ParamRequestList) else [])

    async with MavconfClient(config, transport=fake) as client:
        snapshot = await client.fetch_parameters()

    assert len(snapshot) == 3


@pytest.mark.asyncio
async def test_fetch_times_out_when_vehicle_is_silent(config: MavconfConfig, fake: FakeTransport) -> None:
    async with MavconfClient(config, transport=fake) as client:
        with pytest.raises(MavconfProtocolTimeout) as excinfo:
            await fetch_parameters(client.multiplexer, config, timeout=0.05)

    assert excinfo.value.received == 0
    assert excinfo.value.expected == 0


@pytest.mark.asyncio
async def test_fetch_times_out_when_total_is_never_declared(config: MavconfConfig) -> None:
    replies = [ParamValue(param_id="A", param_value=1.0, param_count=0)]
    fake = FakeTransport(lambda msg: replies if isinstance(msg, ParamRequestList) else [])

    async with MavconfClient(config, transport=fake) as client:
        with pytest.raises(MavconfProtocolTimeout):
            await fetch_parameters(client.multiplexer, config, timeout=0.05)


@pytest.mark.asyncio
async def test_fetch_reports_partial_progress_on_stall(config: MavconfConfig) -> None:
    replies = [
        ParamValue(param_id="A", param_value=1.0, param_count=3),
        ParamValue(param_id="B", param_value=2.0, param_count=3),
    ]
    fake = FakeTransport(lambda msg: replies if isinstance(msg, ParamRequestList) else [])

    async with MavconfClient(config, transport=fake) as client:
        with pytest.raises(MavconfProtocolTimeout) as excinfo:
            await fetch_parameters(client.multiplexer, config, timeout=0.05)
        # The closed stream is dropped by the next sweep.
        await asyncio.sleep(config.sweep_interval * 3)
        assert client.multiplexer._registry.count() == 0  # type: ignore[attr-defined]

    assert excinfo.value.received == 2
    assert excinfo.value.expected == 3


@pytest.mark.asyncio
async def test_read_parameter_skips_unrelated_replies(config: MavconfConfig) -> None:
    def respond(message: MavBaseModel) -> list[MavBaseModel]:
        if isinstance(message, ParamRequestRead):
            return [
                ParamValue(param_id="OTHER", param_value=7.0),
                ParamValue(param_id=message.param_id, param_value=0.25),
            ]
        return []

    fake = FakeTransport(respond)
    async with MavconfClient(config, transport=fake) as client:
        parameter = await client.read_parameter("THR_MIN")

    assert parameter == Parameter(name="THR_MIN", value=0.25)
    request = fake.sent[0]
    assert isinstance(request, ParamRequestRead)
    assert request.param_index == -1


@pytest.mark.asyncio
async def test_read_parameter_times_out(config: MavconfConfig, fake: FakeTransport) -> None:
    async with MavconfClient(config, transport=fake) as client:
        with pytest.raises(MavconfProtocolTimeout):
            await read_parameter(client.multiplexer, config, "THR_MIN", timeout=0.03)


@pytest.mark.asyncio
async def test_set_parameter_sends_single_precision_value(fake: FakeTransport) -> None:
    config = MavconfConfig(target_system=1, target_component=1, poll_interval=0.001)
    async with MavconfClient(config, transport=fake) as client:
        sent = client.set_parameter("THR_MIN", 0.1)
        set_parameter(client.multiplexer, config, Parameter(name="ARMING_CHECK", value=0))
        await asyncio.sleep(0)

    assert sent.value == to_float32(0.1)
    assert [type(m) for m in fake.sent] == [ParamSet, ParamSet]
    first = fake.sent[0]
    assert isinstance(first, ParamSet)
    assert (first.target_system, first.target_component) == (1, 1)
    assert first.param_id == "THR_MIN"
    assert first.param_value == to_float32(0.1)


async def _chatter(fake: FakeTransport, message: ParamValue) -> None:
    while True:
        fake.feed(message)
        await asyncio.sleep(0.005)


@pytest.mark.parametrize("declared_total", [0, 2])
@pytest.mark.asyncio
async def test_fetch_gives_up_on_endless_incomplete_stream(
    config: MavconfConfig, fake: FakeTransport, declared_total: int
) -> None:
    # Replies keep arriving faster than the idle timeout, but the fetch can
    # never complete: either no total is declared or "B" is never sent.
    repeated = ParamValue(param_id="A", param_value=1.0, param_count=declared_total)

    async with MavconfClient(config, transport=fake) as client:
        feeder = asyncio.create_task(_chatter(fake, repeated))
        try:
            with pytest.raises(MavconfProtocolTimeout) as excinfo:
                await asyncio.wait_for(
                    fetch_parameters(client.multiplexer, config, timeout=0.05, deadline=0.2),
                    2.0,
                )
        finally:
            feeder.cancel()

    assert excinfo.value.received == 1
    assert excinfo.value.expected == declared_total
    assert "incomplete after 0.2s" in str(excinfo.value)
