"""Client configuration for mavconf."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from mavconf._constants import DEFAULT_CONNECTION, DEFAULT_DEFINITIONS_URL
from mavconf.exceptions import MavconfConfigError


@dataclasses.dataclass(frozen=True)
class MavconfConfig:
    """Client configuration.

    Parameters
    ----------
    connection : str
        MAVLink connection string,
        ``(tcpout|tcpin|udpout|udpin|udpbcast|serial|file):(ip|dev|path):(port|baud)``.
    source_system : int
        System id this tool uses on the link.
    source_component : int
        Component id this tool uses on the link.
    target_system : int
        System id parameter requests are addressed to (``0`` broadcasts).
    target_component : int
        Component id parameter requests are addressed to (``0`` broadcasts).
    mavlink_version : int
        Wire protocol version for outgoing frames (``1`` or ``2``).
    poll_interval : float
        Seconds the dispatch loop sleeps when the link has no data.
    sweep_interval : float
        Seconds between sweeps that drop closed subscriptions.
    param_timeout : float
        Seconds fetch-all waits for the next ``PARAM_VALUE`` before giving up.
    fetch_timeout : float
        Overall seconds fetch-all may take, however steadily replies arrive.
    heartbeat_timeout : float
        Seconds a liveness check waits for a heartbeat.
    definitions_path : str or None
        Local ``apm.pdef.json`` file. Takes precedence over ``definitions_url``.
    definitions_url : str
        URL the parameter definitions are downloaded from.
    """

    connection: str = DEFAULT_CONNECTION
    source_system: int = 255
    source_component: int = 0
    target_system: int = 0
    target_component: int = 0
    mavlink_version: int = 1
    poll_interval: float = 0.01
    sweep_interval: float = 5.0
    param_timeout: float = 5.0
    fetch_timeout: float = 120.0
    heartbeat_timeout: float = 3.0
    definitions_path: str | None = None
    definitions_url: str = DEFAULT_DEFINITIONS_URL

    @classmethod
    def from_env(cls, **overrides: Any) -> MavconfConfig:
        """Create configuration from ``MAVCONF_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "MAVCONF_CONNECTION": "connection",
            "MAVCONF_DEFINITIONS_PATH": "definitions_path",
            "MAVCONF_DEFINITIONS_URL": "definitions_url",
        }
        _ENV_INT_MAP = {
            "MAVCONF_SOURCE_SYSTEM": "source_system",
            "MAVCONF_SOURCE_COMPONENT": "source_component",
            "MAVCONF_TARGET_SYSTEM": "target_system",
            "MAVCONF_TARGET_COMPONENT": "target_component",
            "MAVCONF_MAVLINK_VERSION": "mavlink_version",
        }
        _ENV_FLOAT_MAP = {
            "MAVCONF_POLL_INTERVAL": "poll_interval",
            "MAVCONF_SWEEP_INTERVAL": "sweep_interval",
            "MAVCONF_PARAM_TIMEOUT": "param_timeout",
            "MAVCONF_FETCH_TIMEOUT": "fetch_timeout",
            "MAVCONF_HEARTBEAT_TIMEOUT": "heartbeat_timeout",
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = val
        for env_key, field_name in _ENV_INT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _parse_env(env_key, val, int)
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _parse_env(env_key, val, float)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)


def _parse_env(key: str, value: str, kind: type) -> Any:
    try:
        return kind(value)
    except ValueError as exc:
        raise MavconfConfigError(f"{key}={value!r} is not a valid {kind.__name__}") from exc
