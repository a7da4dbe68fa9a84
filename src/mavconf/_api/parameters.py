"""Parameter protocol: fetch-all, single read and set.

Messages:
  - PARAM_REQUEST_LIST -> stream of PARAM_VALUE
  - PARAM_REQUEST_READ -> one PARAM_VALUE
  - PARAM_SET (fire-and-forget)
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from mavconf._multiplexer import MavlinkMultiplexer
from mavconf.config import MavconfConfig
from mavconf.exceptions import MavconfProtocolTimeout
from mavconf.models import (
    MessageType,
    Parameter,
    ParameterSnapshot,
    ParamRequestList,
    ParamRequestRead,
    ParamSet,
    ParamValue,
)

_logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
"""Called with ``(done, total)``; *total* may grow while fetching."""


async def fetch_parameters(
    multiplexer: MavlinkMultiplexer,
    config: MavconfConfig,
    *,
    on_progress: ProgressCallback | None = None,
    timeout: float | None = None,
    deadline: float | None = None,
) -> ParameterSnapshot:
    """Fetch every parameter the vehicle holds.

    The vehicle restates its total in every reply and replies may arrive
    duplicated or out of order, so completion is declared once the number
    of distinct names equals the largest total seen so far.

    Raises :class:`MavconfProtocolTimeout` if no reply arrives within
    *timeout* seconds (``config.param_timeout`` by default) of the request
    or of the previous reply, or if the fetch is still incomplete after
    *deadline* seconds (``config.fetch_timeout`` by default).
    """
    wait = config.param_timeout if timeout is None else timeout
    overall = config.fetch_timeout if deadline is None else deadline
    give_up = time.monotonic() + overall
    snapshot = ParameterSnapshot()
    declared_total = 0

    # Subscribe before sending, otherwise early replies are lost.
    async with multiplexer.subscribe(MessageType.PARAM_VALUE) as stream:
        multiplexer.send(
            ParamRequestList(
                target_system=config.target_system,
                target_component=config.target_component,
            )
        )
        _logger.debug("Requested parameter list target=%d/%d", config.target_system, config.target_component)

        while declared_total == 0 or len(snapshot) < declared_total:
            remaining = give_up - time.monotonic()
            try:
                message = await asyncio.wait_for(stream.get(), max(min(wait, remaining), 0.0))
            except TimeoutError as exc:
                expected = str(declared_total) if declared_total else "an unknown number of"
                if remaining <= wait:
                    reason = f"Parameter fetch incomplete after {overall:g}s"
                else:
                    reason = f"Parameter fetch stalled after {wait:g}s"
                raise MavconfProtocolTimeout(
                    f"{reason}: received {len(snapshot)} of {expected} parameters",
                    received=len(snapshot),
                    expected=declared_total,
                ) from exc
            if not isinstance(message, ParamValue):
                continue

            declared_total = max(declared_total, message.param_count)
            snapshot.upsert(message.param_id, message.param_value)
            if on_progress is not None:
                on_progress(len(snapshot), declared_total)

    _logger.debug("Fetched %d parameters", len(snapshot))
    return snapshot


async def read_parameter(
    multiplexer: MavlinkMultiplexer,
    config: MavconfConfig,
    name: str,
    *,
    timeout: float | None = None,
) -> Parameter:
    """Read a single parameter back from the vehicle by name."""
    wait = config.param_timeout if timeout is None else timeout
    deadline = time.monotonic() + wait

    async with multiplexer.subscribe(MessageType.PARAM_VALUE) as stream:
        multiplexer.send(
            ParamRequestRead(
                target_system=config.target_system,
                target_component=config.target_component,
                param_id=name,
                param_index=-1,
            )
        )
        while True:
            remaining = max(deadline - time.monotonic(), 0.0)
            try:
                message = await asyncio.wait_for(stream.get(), remaining)
            except TimeoutError as exc:
                raise MavconfProtocolTimeout(
                    f"No PARAM_VALUE for {name} within {wait:g}s",
                    expected=1,
                ) from exc
            if isinstance(message, ParamValue) and message.param_id == name:
                return Parameter(name=message.param_id, value=message.param_value)


def set_parameter(
    multiplexer: MavlinkMultiplexer,
    config: MavconfConfig,
    parameter: Parameter,
) -> None:
    """Send a PARAM_SET for *parameter*; no confirmation is awaited."""
    multiplexer.send(
        ParamSet(
            target_system=config.target_system,
            target_component=config.target_component,
            param_id=parameter.name,
            param_value=parameter.value,
        )
    )
    _logger.debug("Sent PARAM_SET %s=%s", parameter.name, parameter.value)
