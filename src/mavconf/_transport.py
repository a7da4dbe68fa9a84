"""MAVLink link transport built on ``pymavlink.mavutil``."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Protocol

from pymavlink import mavutil

from mavconf import _codec
from mavconf._constants import CONNECTION_SCHEMES
from mavconf.config import MavconfConfig
from mavconf.exceptions import MavconfConfigError, MavconfTransportError
from mavconf.models._base import MavBaseModel

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural link interface used by the multiplexer.

    ``recv`` returns the next decoded message, ``None`` for a frame that is
    not modelled, and raises :class:`BlockingIOError` when no data is
    available yet. Any other exception from ``recv`` is a permanent read
    failure. ``send`` must be safe to call from several callers at once.
    """

    def send(self, message: MavBaseModel) -> None:
        ...

    def recv(self) -> MavBaseModel | None:
        ...

    def close(self) -> None:
        ...


@dataclass(frozen=True)
class ConnectionSpec:
    """Parsed ``scheme:address:port_or_baud`` connection string."""

    scheme: str
    address: str
    port: int | None = None

    def mavutil_args(self) -> tuple[str, dict[str, Any]]:
        """Return the ``mavutil.mavlink_connection`` device string and extra kwargs."""
        if self.scheme == "serial":
            return self.address, {"baud": self.port}
        if self.scheme == "file":
            return self.address, {}
        scheme = "tcp" if self.scheme == "tcpout" else self.scheme
        return f"{scheme}:{self.address}:{self.port}", {}


def parse_connection_string(value: str) -> ConnectionSpec:
    """Parse a connection string such as ``udpbcast:0.0.0.0:14551``.

    ``file`` connections take a path and an optional trailing port field,
    which is ignored.
    """
    text = value.strip()
    scheme, sep, rest = text.partition(":")
    scheme = scheme.lower()
    if not sep or scheme not in CONNECTION_SCHEMES:
        raise MavconfConfigError(
            f"Invalid connection string {value!r}: expected "
            f"({'|'.join(sorted(CONNECTION_SCHEMES))}):(ip|dev|path):(port|baud)"
        )

    address, sep, port_text = rest.rpartition(":")
    if scheme == "file":
        path = address if sep and port_text.isdigit() else rest
        if not path:
            raise MavconfConfigError(f"Invalid connection string {value!r}: missing file path")
        return ConnectionSpec(scheme=scheme, address=path)

    if not sep or not address:
        raise MavconfConfigError(f"Invalid connection string {value!r}: missing address or port")
    if not port_text.isdigit():
        raise MavconfConfigError(f"Invalid connection string {value!r}: {port_text!r} is not a number")
    port = int(port_text)
    if scheme == "serial":
        if port <= 0:
            raise MavconfConfigError(f"Invalid connection string {value!r}: baud rate must be positive")
    elif not 0 < port < 65536:
        raise MavconfConfigError(f"Invalid connection string {value!r}: port out of range")
    return ConnectionSpec(scheme=scheme, address=address, port=port)


class MavlinkTransport:
    """Transport over a ``pymavlink`` connection.

    Reads are non-blocking and only ever issued by the dispatch loop. Writes
    may come from any caller and are serialized with a lock.
    """

    def __init__(self, connection: Any, *, force_mavlink1: bool = True, label: str = "") -> None:
        self._conn = connection
        self._force_mavlink1 = force_mavlink1
        self._label = label
        self._write_lock = threading.Lock()

    @classmethod
    def open(cls, config: MavconfConfig) -> MavlinkTransport:
        """Open the link described by ``config.connection``."""
        spec = parse_connection_string(config.connection)
        device, kwargs = spec.mavutil_args()
        _logger.debug("Opening MAVLink connection device=%s kwargs=%s", device, kwargs)
        try:
            connection = mavutil.mavlink_connection(
                device,
                source_system=config.source_system,
                source_component=config.source_component,
                **kwargs,
            )
        except OSError as exc:
            raise MavconfTransportError(
                f"Unable to open {config.connection}: {exc}",
                connection=config.connection,
            ) from exc
        return cls(connection, force_mavlink1=config.mavlink_version == 1, label=config.connection)

    def send(self, message: MavBaseModel) -> None:
        encoded = _codec.encode(message, self._conn.mav)
        try:
            with self._write_lock:
                self._conn.mav.send(encoded, force_mavlink1=self._force_mavlink1)
        except OSError as exc:
            raise MavconfTransportError(
                f"Failed to send {message.message_type} on {self._label}: {exc}",
                connection=self._label,
            ) from exc

    def recv(self) -> MavBaseModel | None:
        raw = self._conn.recv_match(blocking=False)
        if raw is None:
            raise BlockingIOError("no MAVLink frame available")
        return _codec.decode(raw)

    def close(self) -> None:
        self._conn.close()
