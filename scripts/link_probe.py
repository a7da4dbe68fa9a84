#!/usr/bin/env python3
"""Passive MAVLink probe.

Opens a connection, then prints every heartbeat and status text the
vehicle sends without requesting anything. Use this to check that a
connection string reaches the vehicle before pulling or pushing.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from dataclasses import dataclass
from pathlib import Path

# Allow running from repo root without installing the package.
_src = Path(__file__).resolve().parent.parent / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from mavconf import MavconfClient, MavconfConfig, MavconfError, MessageType  # noqa: E402
from mavconf._multiplexer import MessageStream  # noqa: E402
from mavconf.models import Heartbeat, StatusText  # noqa: E402

_LOG = logging.getLogger("link_probe")

_SEVERITIES = ("EMERGENCY", "ALERT", "CRITICAL", "ERROR", "WARNING", "NOTICE", "INFO", "DEBUG")


@dataclass
class ProbeStats:
    started_at: float
    heartbeats: int = 0
    status_texts: int = 0
    last_heartbeat_at: float | None = None

    def on_heartbeat(self, now: float) -> float | None:
        previous = self.last_heartbeat_at
        self.heartbeats += 1
        self.last_heartbeat_at = now
        return None if previous is None else now - previous


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Passive MAVLink heartbeat and status text probe.")
    parser.add_argument("-c", "--connection", help="MAVLink connection string.")
    parser.add_argument(
        "--duration",
        type=float,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    parser.add_argument(
        "--quiet-heartbeats",
        action="store_true",
        help="Count heartbeats without printing each one.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logs.")
    return parser.parse_args()


async def _watch_heartbeats(stream: MessageStream, stats: ProbeStats, quiet: bool) -> None:
    async for message in stream:
        if not isinstance(message, Heartbeat):
            continue
        delta = stats.on_heartbeat(time.time())
        if not quiet:
            gap_text = "first" if delta is None else f"{delta:.2f}s"
            print(
                f"[probe] heartbeat#{stats.heartbeats} gap={gap_text} type={message.type} "
                f"autopilot={message.autopilot} status={message.system_status}"
            )


async def _watch_status(stream: MessageStream, stats: ProbeStats) -> None:
    async for message in stream:
        if not isinstance(message, StatusText):
            continue
        stats.status_texts += 1
        severity = _SEVERITIES[message.severity] if 0 <= message.severity < len(_SEVERITIES) else message.severity
        print(f"[probe] {severity}: {message.text}")


async def _probe(config: MavconfConfig, args: argparse.Namespace, stats: ProbeStats) -> None:
    async with MavconfClient(config) as client:
        print(f"[probe] Listening on {config.connection}")
        async with (
            client.subscribe(MessageType.HEARTBEAT) as heartbeats,
            client.subscribe(MessageType.STATUSTEXT) as texts,
        ):
            watchers = asyncio.gather(
                _watch_heartbeats(heartbeats, stats, args.quiet_heartbeats),
                _watch_status(texts, stats),
            )
            try:
                await asyncio.wait_for(watchers, args.duration or None)
            except TimeoutError:
                print(f"[probe] Reached --duration={args.duration:g}s, stopping.")


def _print_summary(stats: ProbeStats) -> None:
    runtime = time.time() - stats.started_at
    print("[probe] Summary")
    print(f"[probe]   runtime_s    : {runtime:.1f}")
    print(f"[probe]   heartbeats   : {stats.heartbeats}")
    print(f"[probe]   status_texts : {stats.status_texts}")


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    overrides = {"connection": args.connection} if args.connection else {}
    stats = ProbeStats(started_at=time.time())
    try:
        asyncio.run(_probe(MavconfConfig.from_env(**overrides), args, stats))
    except KeyboardInterrupt:
        pass
    except MavconfError as exc:
        _LOG.error("Probe failed: %s", exc)
        _print_summary(stats)
        return 2

    _print_summary(stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
