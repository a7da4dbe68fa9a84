"""Command line interface.

Usage::

    mavconf -c udpin:0.0.0.0:14550 pull params.txt
    mavconf -c serial:/dev/ttyACM0:115200 push params.txt
    mavconf configure
    mavconf info THR_
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import shutil
import sys
from collections.abc import Sequence
from pathlib import Path

from mavconf import __version__
from mavconf._api.parameters import ProgressCallback
from mavconf.client import MavconfClient
from mavconf.config import MavconfConfig
from mavconf.definitions import DefinitionCatalog
from mavconf.exceptions import MavconfCancelled, MavconfDefinitionError, MavconfError
from mavconf.interactive import configure

_logger = logging.getLogger("mavconf")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CANCELLED = 130


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mavconf",
        description="Inspect and modify the parameters of a MAVLink vehicle.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-c",
        "--connection",
        help="MAVLink connection string "
        "(tcpout|tcpin|udpout|udpin|udpbcast|serial|file):(ip|dev|path):(port|baud); "
        "defaults to $MAVCONF_CONNECTION or udpbcast:0.0.0.0:14551",
    )
    parser.add_argument("--target-system", type=int, help="System id to address (0 = broadcast)")
    parser.add_argument("--target-component", type=int, help="Component id to address (0 = broadcast)")
    parser.add_argument("--timeout", type=float, help="Seconds to wait for each parameter reply")
    parser.add_argument("--definitions", help="Local apm.pdef.json to use instead of downloading it")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logs")

    sub = parser.add_subparsers(dest="command", required=True)

    pull = sub.add_parser("pull", help="Pull configuration from the vehicle to a file")
    pull.add_argument("out_file", type=Path)

    push = sub.add_parser("push", help="Push configuration from a file to the vehicle")
    push.add_argument("in_file", type=Path)

    sub.add_parser("configure", help="Interactively search, inspect and edit parameters")

    info = sub.add_parser("info", help="Show metadata for parameters matching a search term")
    info.add_argument("search_term", nargs="?", default="")
    info.add_argument("--width", type=int, help="Wrap descriptions at this width")
    return parser


def _config_from_args(args: argparse.Namespace) -> MavconfConfig:
    overrides = {
        "connection": args.connection,
        "target_system": args.target_system,
        "target_component": args.target_component,
        "param_timeout": args.timeout,
        "definitions_path": args.definitions,
    }
    return MavconfConfig.from_env(**{key: value for key, value in overrides.items() if value is not None})


def _progress(label: str) -> ProgressCallback:
    interactive = sys.stderr.isatty()

    def report(done: int, total: int) -> None:
        line = f"{label} {done}/{total}"
        if interactive:
            end = "\n" if done >= total else ""
            sys.stderr.write(f"\r{line}{end}")
            sys.stderr.flush()
        elif done >= total:
            sys.stderr.write(f"{line}\n")

    return report


async def _load_catalog(config: MavconfConfig) -> DefinitionCatalog:
    if config.definitions_path:
        return DefinitionCatalog.load_file(config.definitions_path)
    return await DefinitionCatalog.fetch(config.definitions_url)


async def _check_link(client: MavconfClient) -> None:
    if not await client.is_alive():
        _logger.warning(
            "No heartbeat within %.1fs on %s; continuing anyway",
            client.config.heartbeat_timeout,
            client.config.connection,
        )


async def _run(args: argparse.Namespace, config: MavconfConfig) -> int:
    if args.command == "info":
        catalog = await _load_catalog(config)
        width = args.width or min(shutil.get_terminal_size().columns, 80)
        matches = catalog.search(args.search_term)
        if not matches:
            _logger.error("No definitions match '%s'", args.search_term)
            return EXIT_ERROR
        for definition in matches:
            print(definition.describe(width))
            print()
        return EXIT_OK

    if args.command == "configure":
        try:
            catalog = await _load_catalog(config)
        except MavconfDefinitionError as exc:
            _logger.warning("Parameter definitions unavailable, prompting without metadata: %s", exc)
            catalog = DefinitionCatalog()
    async with MavconfClient(config) as client:
        await _check_link(client)
        if args.command == "pull":
            snapshot = await client.pull(args.out_file, on_progress=_progress("fetching parameters"))
            _logger.info("Wrote %d parameters to %s", len(snapshot), args.out_file)
        elif args.command == "push":
            sent = await client.push(args.in_file, on_progress=_progress("sending parameters"))
            _logger.info("Sent %d parameters from %s", sent, args.in_file)
        else:
            changed = await configure(client, catalog)
            _logger.info("Changed %d parameter(s)", changed)
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = _config_from_args(args)
        return asyncio.run(_run(args, config))
    except (MavconfCancelled, KeyboardInterrupt):
        _logger.info("Cancelled")
        return EXIT_CANCELLED
    except MavconfError as exc:
        _logger.error("%s", exc)
        return EXIT_ERROR
