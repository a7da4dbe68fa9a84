"""Connection multiplexer: one link shared by many concurrent consumers.

Owns:
- the single dispatch loop that reads the link and fans messages out
- the subscription registry (message type -> subscriptions)
- the liveness record updated by heartbeats

Only the dispatch loop touches the registry and the liveness record.
Callers register interest by posting onto a control queue and receive
messages through their own :class:`MessageStream`.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from mavconf._transport import Transport
from mavconf.exceptions import MavconfConnectionClosedError, MavconfError, MavconfTransportError
from mavconf.models._base import MavBaseModel, MessageType

_logger = logging.getLogger(__name__)


class MessageStream:
    """Consumer end of a subscription.

    Yields messages of one type in arrival order. Closing the stream is the
    only way to cancel; the dispatch loop notices on its next delivery
    attempt (or sweep) and drops the subscription. Nothing is yielded after
    :meth:`close`.

    Usage::

        async with multiplexer.subscribe(MessageType.STATUSTEXT) as stream:
            async for message in stream:
                ...
    """

    def __init__(self, message_type: MessageType) -> None:
        self.message_type = message_type
        self._queue: asyncio.Queue[MavBaseModel | MavconfConnectionClosedError] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True

    async def get(self) -> MavBaseModel:
        """Wait for the next message.

        Raises the dispatch loop's terminal error once every message that
        arrived before the failure has been consumed.
        """
        if self._closed:
            raise MavconfError(f"{self.message_type} subscription is closed")
        item = await self._queue.get()
        if isinstance(item, MavconfConnectionClosedError):
            # Leave the error in place so every later get() raises it too.
            self._queue.put_nowait(item)
            raise item
        return item

    def _deliver(self, message: MavBaseModel) -> bool:
        """Queue *message*; ``False`` means the consumer has gone away."""
        if self._closed:
            return False
        self._queue.put_nowait(message)
        return True

    def _fail(self, error: MavconfConnectionClosedError) -> None:
        self._queue.put_nowait(error)

    def __aiter__(self) -> MessageStream:
        return self

    async def __anext__(self) -> MavBaseModel:
        if self._closed:
            raise StopAsyncIteration
        return await self.get()

    async def __aenter__(self) -> MessageStream:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.close()


@dataclass(slots=True)
class _Subscription:
    """A registered interest in one message type."""

    message_type: MessageType
    stream: MessageStream
    recurring: bool


@dataclass(slots=True)
class LivenessRecord:
    """Monotonic timestamp of the last heartbeat seen on the link."""

    last_seen: float | None = None


@dataclass(slots=True)
class _Registry:
    entries: dict[MessageType, list[_Subscription]] = field(default_factory=dict)

    def add(self, sub: _Subscription) -> None:
        self.entries.setdefault(sub.message_type, []).append(sub)

    def count(self) -> int:
        return sum(len(subs) for subs in self.entries.values())


class MavlinkMultiplexer:
    """Share one MAVLink transport among any number of async callers.

    :meth:`run` must be running (normally as a background task) for
    subscriptions and requests to make progress. Subscriptions posted
    before it starts are registered as soon as it does.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        poll_interval: float = 0.01,
        sweep_interval: float = 5.0,
    ) -> None:
        self._transport = transport
        self._poll_interval = poll_interval
        self._sweep_interval = sweep_interval
        self._control: asyncio.Queue[_Subscription] = asyncio.Queue()
        self._registry = _Registry()
        self._liveness = LivenessRecord()
        self._started = False
        self._failure: MavconfConnectionClosedError | None = None

    @property
    def is_running(self) -> bool:
        """Whether the dispatch loop has started and not terminated."""
        return self._started and self._failure is None

    @property
    def last_heartbeat(self) -> float | None:
        """``time.monotonic()`` of the last heartbeat, or ``None``."""
        return self._liveness.last_seen

    @property
    def failure(self) -> MavconfConnectionClosedError | None:
        """The terminal error, once the dispatch loop has stopped."""
        return self._failure

    # ------------------------------------------------------------------
    # Caller side
    # ------------------------------------------------------------------

    def send(self, message: MavBaseModel) -> None:
        """Write *message* to the link. Transport errors are not retried."""
        self._raise_if_closed()
        self._transport.send(message)

    def subscribe(self, message_type: MessageType | str) -> MessageStream:
        """Receive every later message of *message_type* until the stream is closed."""
        return self._post(MessageType(message_type), recurring=True)

    async def request(self, message_type: MessageType | str) -> MavBaseModel:
        """Wait for exactly one message of *message_type*."""
        stream = self._post(MessageType(message_type), recurring=False)
        try:
            return await stream.get()
        finally:
            # A cancelled or timed-out request leaves a closed stream behind;
            # the next delivery or sweep drops it.
            stream.close()

    async def is_alive(self, timeout: float) -> bool:
        """Return ``True`` if a heartbeat arrives within *timeout* seconds.

        Passive: nothing is sent to provoke the heartbeat.
        """
        self._raise_if_closed()
        try:
            await asyncio.wait_for(self.request(MessageType.HEARTBEAT), timeout)
        except TimeoutError:
            return False
        return True

    def _post(self, message_type: MessageType, *, recurring: bool) -> MessageStream:
        self._raise_if_closed()
        stream = MessageStream(message_type)
        self._control.put_nowait(_Subscription(message_type=message_type, stream=stream, recurring=recurring))
        return stream

    def _raise_if_closed(self) -> None:
        if self._failure is not None:
            raise MavconfConnectionClosedError(str(self._failure), connection=self._failure.connection)

    # ------------------------------------------------------------------
    # Dispatch loop
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Dispatch loop. Runs until the link fails or the task is cancelled."""
        if self._started:
            raise MavconfError("Dispatch loop already started")
        self._started = True
        _logger.debug("Dispatch loop started")
        try:
            await self._pump()
        except (OSError, MavconfTransportError) as exc:
            _logger.warning("MAVLink read failed, dispatch loop terminating: %s", exc)
            self._terminate(MavconfConnectionClosedError(f"Connection lost: {exc}"))
        finally:
            if self._failure is None:
                self._terminate(MavconfConnectionClosedError("Dispatch loop stopped"))
            _logger.debug("Dispatch loop stopped")

    async def _pump(self) -> None:
        next_sweep = time.monotonic() + self._sweep_interval
        while True:
            # Registrations posted before a send are always in place before
            # the reply to that send can be read.
            self._drain_control()
            try:
                message = self._transport.recv()
            except BlockingIOError:
                await asyncio.sleep(self._poll_interval)
            else:
                if message is None:
                    _logger.debug("Discarding unmodelled frame")
                else:
                    self._dispatch(message)
                await asyncio.sleep(0)

            now = time.monotonic()
            if now >= next_sweep:
                self._sweep()
                next_sweep = now + self._sweep_interval

    def _drain_control(self) -> None:
        while True:
            try:
                sub = self._control.get_nowait()
            except asyncio.QueueEmpty:
                return
            self._registry.add(sub)
            _logger.debug(
                "Registered %s subscription type=%s",
                "recurring" if sub.recurring else "one-shot",
                sub.message_type,
            )

    def _dispatch(self, message: MavBaseModel) -> None:
        tag = message.message_type
        if tag is MessageType.HEARTBEAT:
            self._liveness.last_seen = time.monotonic()

        subs = self._registry.entries.get(tag)
        if not subs:
            return
        remaining: list[_Subscription] = []
        for sub in subs:
            if not sub.stream._deliver(message):
                _logger.debug("Dropping closed %s subscription", tag)
                continue
            if sub.recurring:
                remaining.append(sub)
        if remaining:
            self._registry.entries[tag] = remaining
        else:
            del self._registry.entries[tag]

    def _sweep(self) -> None:
        """Drop closed subscriptions under every tag, not just the busy ones."""
        before = self._registry.count()
        for tag in list(self._registry.entries):
            alive = [sub for sub in self._registry.entries[tag] if not sub.stream.closed]
            if alive:
                self._registry.entries[tag] = alive
            else:
                del self._registry.entries[tag]
        dropped = before - self._registry.count()
        if dropped:
            _logger.debug("Swept %d closed subscription(s)", dropped)

    def _terminate(self, error: MavconfConnectionClosedError) -> None:
        self._failure = error
        self._drain_control()
        for subs in self._registry.entries.values():
            for sub in subs:
                sub.stream._fail(error)
        self._registry.entries.clear()
