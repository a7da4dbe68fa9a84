"""High-level async client for MAVLink parameter management."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from pathlib import Path
from typing import Any

from mavconf._api import param_file as _param_file_api
from mavconf._api import parameters as _parameters_api
from mavconf._api.parameters import ProgressCallback
from mavconf._multiplexer import MavlinkMultiplexer, MessageStream
from mavconf._transport import MavlinkTransport, Transport
from mavconf.config import MavconfConfig
from mavconf.exceptions import MavconfError
from mavconf.models import MessageType, Parameter, ParameterSnapshot

_logger = logging.getLogger(__name__)


class MavconfClient:
    """Async client for one MAVLink vehicle.

    Usage::

        async with MavconfClient(config) as client:
            snapshot = await client.fetch_parameters()
            client.set_parameter("THR_MIN", 0.1)

    Entering the context opens the link (unless a *transport* was given)
    and starts the dispatch loop as a background task.
    """

    def __init__(self, config: MavconfConfig, *, transport: Transport | None = None) -> None:
        self._config = config
        self._external_transport = transport is not None
        self._transport = transport
        self._multiplexer: MavlinkMultiplexer | None = None
        self._dispatch_task: asyncio.Task[None] | None = None

    @property
    def config(self) -> MavconfConfig:
        return self._config

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> MavconfClient:
        if self._transport is None:
            loop = asyncio.get_running_loop()
            self._transport = await loop.run_in_executor(None, MavlinkTransport.open, self._config)
        self._multiplexer = MavlinkMultiplexer(
            self._transport,
            poll_interval=self._config.poll_interval,
            sweep_interval=self._config.sweep_interval,
        )
        self._dispatch_task = asyncio.create_task(self._multiplexer.run(), name="mavconf-dispatch")
        # Let the loop start so is_running holds once the context is entered.
        await asyncio.sleep(0)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        task = self._dispatch_task
        self._dispatch_task = None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if not self._external_transport and self._transport is not None:
            self._transport.close()
            self._transport = None
        self._multiplexer = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_multiplexer(self) -> MavlinkMultiplexer:
        if self._multiplexer is None:
            raise MavconfError("Client not initialized. Use 'async with MavconfClient(...) as client:'")
        return self._multiplexer

    # ------------------------------------------------------------------
    # Link
    # ------------------------------------------------------------------

    @property
    def multiplexer(self) -> MavlinkMultiplexer:
        return self._require_multiplexer()

    def subscribe(self, message_type: MessageType | str) -> MessageStream:
        """Stream every later message of *message_type*; close the stream to stop."""
        return self._require_multiplexer().subscribe(message_type)

    async def is_alive(self, timeout: float | None = None) -> bool:
        """Wait up to *timeout* seconds (``config.heartbeat_timeout``) for a heartbeat."""
        wait = self._config.heartbeat_timeout if timeout is None else timeout
        return await self._require_multiplexer().is_alive(wait)

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    async def fetch_parameters(self, *, on_progress: ProgressCallback | None = None) -> ParameterSnapshot:
        """Fetch every parameter the vehicle holds."""
        return await _parameters_api.fetch_parameters(
            self._require_multiplexer(),
            self._config,
            on_progress=on_progress,
        )

    async def read_parameter(self, name: str, *, timeout: float | None = None) -> Parameter:
        """Read one parameter back from the vehicle."""
        return await _parameters_api.read_parameter(
            self._require_multiplexer(),
            self._config,
            name,
            timeout=timeout,
        )

    def set_parameter(self, name: str, value: float) -> Parameter:
        """Send a PARAM_SET; returns the parameter as sent (single precision)."""
        parameter = Parameter(name=name, value=value)
        _parameters_api.set_parameter(self._require_multiplexer(), self._config, parameter)
        return parameter

    async def pull(self, path: Path | str, *, on_progress: ProgressCallback | None = None) -> ParameterSnapshot:
        """Fetch every parameter and dump it to *path*."""
        snapshot = await self.fetch_parameters(on_progress=on_progress)
        _param_file_api.write_param_file(snapshot, path)
        return snapshot

    async def push(self, path: Path | str, *, on_progress: ProgressCallback | None = None) -> int:
        """Send every parameter in *path* to the vehicle; returns the count sent."""
        return await _param_file_api.apply_param_file(
            self._require_multiplexer(),
            self._config,
            path,
            on_progress=on_progress,
        )
