from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable, Iterable

import pytest

from mavconf.config import MavconfConfig
from mavconf.models import MavBaseModel, ParamRequestList, ParamValue

Responder = Callable[[MavBaseModel], Iterable[MavBaseModel | None]]


class FakeTransport:
    """In-memory link: tests feed inbound frames and inspect what was sent.

    ``None`` in the inbox stands for a frame the codec does not model.
    Once :meth:`fail` is called, ``recv`` raises after the inbox drains.
    """

    def __init__(self, responder: Responder | None = None) -> None:
        self.inbox: deque[MavBaseModel | None] = deque()
        self.sent: list[MavBaseModel] = []
        self.responder = responder
        self.closed = False
        self._error: BaseException | None = None

    def feed(self, *messages: MavBaseModel | None) -> None:
        self.inbox.extend(messages)

    def fail(self, error: BaseException) -> None:
        self._error = error

    def send(self, message: MavBaseModel) -> None:
        self.sent.append(message)
        if self.responder is not None:
            self.feed(*self.responder(message))

    def recv(self) -> MavBaseModel | None:
        if self.inbox:
            return self.inbox.popleft()
        if self._error is not None:
            raise self._error
        raise BlockingIOError

    def close(self) -> None:
        self.closed = True

    async def drained(self) -> None:
        """Wait until the dispatch loop has consumed every queued frame."""
        for _ in range(500):
            if not self.inbox:
                break
            await asyncio.sleep(0.001)
        await asyncio.sleep(0.01)


def vehicle(values: dict[str, float], *, duplicate: int = 1) -> Responder:
    """Responder that answers PARAM_REQUEST_LIST like a vehicle holding *values*."""

    def respond(message: MavBaseModel) -> list[MavBaseModel]:
        if not isinstance(message, ParamRequestList):
            return []
        count = len(values)
        replies = []
        for index, (name, value) in enumerate(values.items()):
            reply = ParamValue(param_id=name, param_value=value, param_count=count, param_index=index)
            replies.extend([reply] * duplicate)
        return replies

    return respond


@pytest.fixture
def config() -> MavconfConfig:
    return MavconfConfig(
        connection="udpin:127.0.0.1:14550",
        poll_interval=0.001,
        sweep_interval=0.05,
        param_timeout=0.2,
        heartbeat_timeout=0.1,
    )


@pytest.fixture
def fake() -> FakeTransport:
    return FakeTransport()
