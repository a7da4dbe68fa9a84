"""Flat parameter files: ``name,value`` per line.

Format::

    # Generated on 2026-10-19T09:30:00+02:00 by mavconf
    ARMING_CHECK,1
    THR_MIN,0.1

Blank lines and lines whose first non-blank character is ``#`` are
ignored on read.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator, Mapping
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from mavconf._api.parameters import ProgressCallback, set_parameter
from mavconf._constants import TOOL_NAME
from mavconf._multiplexer import MavlinkMultiplexer
from mavconf.config import MavconfConfig
from mavconf.exceptions import MavconfError, MavconfParseError
from mavconf.models import Parameter
from mavconf.models._base import to_float32

_logger = logging.getLogger(__name__)


def format_param_value(value: float) -> str:
    """Shortest decimal text that reads back as the same 32-bit float."""
    single = to_float32(value)
    for precision in range(1, 10):
        text = f"{single:.{precision}g}"
        if to_float32(float(text)) == single:
            return text
    return repr(single)


def _is_content(line: str) -> bool:
    stripped = line.strip()
    return bool(stripped) and not stripped.startswith("#")


def _read_lines(path: Path | str) -> list[str]:
    try:
        return Path(path).read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise MavconfError(f"Unable to read parameter file {path}: {exc}") from exc


def parse_param_line(line: str, line_number: int, path: Path | str | None = None) -> Parameter | None:
    """Parse one line; ``None`` for comments and blank lines.

    *line_number* is 1-based and only used for error reporting.
    """
    if not _is_content(line):
        return None

    where = f"{path}:{line_number}" if path is not None else f"line {line_number}"
    fields = line.strip().split(",")
    name = fields[0].strip()
    if not name:
        raise MavconfParseError(
            f"{where}: unable to locate parameter name",
            line_number=line_number,
            path=path,
        )
    if len(fields) < 2 or not fields[1].strip():
        raise MavconfParseError(
            f"{where}: unable to locate parameter value",
            line_number=line_number,
            path=path,
        )
    raw_value = fields[1].strip()
    try:
        value = float(raw_value)
    except ValueError as exc:
        raise MavconfParseError(
            f"{where}: unable to parse parameter value {raw_value!r}",
            line_number=line_number,
            path=path,
        ) from exc

    try:
        return Parameter(name=name, value=value)
    except ValidationError as exc:
        raise MavconfParseError(
            f"{where}: invalid parameter {name!r}: {exc.errors()[0]['msg']}",
            line_number=line_number,
            path=path,
        ) from exc


def iter_param_file(path: Path | str) -> Iterator[Parameter]:
    """Yield parameters in file order, raising at the first malformed line."""
    lines = _read_lines(path)
    for line_number, line in enumerate(lines, start=1):
        parameter = parse_param_line(line, line_number, path)
        if parameter is not None:
            yield parameter


def read_param_file(path: Path | str) -> dict[str, float]:
    """Read a whole parameter file into a ``name -> value`` dict."""
    return {parameter.name: parameter.value for parameter in iter_param_file(path)}


def write_param_file(
    parameters: Mapping[str, float],
    path: Path | str,
    *,
    generated_at: datetime | None = None,
) -> None:
    """Write *parameters* sorted by name, preceded by a generation comment."""
    stamp = (generated_at or datetime.now().astimezone()).isoformat()
    lines = [f"# Generated on {stamp} by {TOOL_NAME}"]
    lines.extend(f"{name},{format_param_value(parameters[name])}" for name in sorted(parameters))
    try:
        Path(path).write_text("\n".join(lines) + "\n", encoding="utf-8")
    except OSError as exc:
        raise MavconfError(f"Unable to write parameter file {path}: {exc}") from exc
    _logger.debug("Wrote %d parameters to %s", len(parameters), path)


async def apply_param_file(
    multiplexer: MavlinkMultiplexer,
    config: MavconfConfig,
    path: Path | str,
    *,
    on_progress: ProgressCallback | None = None,
) -> int:
    """Send one PARAM_SET per line of *path*, in file order.

    A malformed line aborts with :class:`MavconfParseError`; lines sent
    before it stay applied. Returns the number of parameters sent.
    """
    lines = _read_lines(path)
    total = sum(1 for line in lines if _is_content(line))

    sent = 0
    for line_number, line in enumerate(lines, start=1):
        parameter = parse_param_line(line, line_number, path)
        if parameter is None:
            continue
        set_parameter(multiplexer, config, parameter)
        sent += 1
        if on_progress is not None:
            on_progress(sent, total)
        # Let the dispatch loop run between writes on long files.
        await asyncio.sleep(0)

    _logger.debug("Applied %d parameters from %s", sent, path)
    return sent
