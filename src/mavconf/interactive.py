"""Terminal prompts for browsing and editing parameters.

Prompts run ``input`` in a worker thread so the dispatch loop keeps
pumping while the operator types. *ask* and *out* are injectable so the
flows can be driven without a terminal.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable
from typing import Protocol

from mavconf.definitions import DefinitionCatalog
from mavconf.exceptions import MavconfCancelled, MavconfError
from mavconf.models import Definition, Parameter, ParameterSnapshot
from mavconf.models._base import to_float32

_logger = logging.getLogger(__name__)

AskFn = Callable[[str], Awaitable[str]]
OutFn = Callable[[str], None]

_CUSTOM = "c"
_QUIT = "q"


async def _ainput(prompt: str) -> str:
    return await asyncio.to_thread(input, prompt)


async def _ask(ask: AskFn, prompt: str) -> str:
    try:
        return (await ask(prompt)).strip()
    except EOFError as exc:
        raise MavconfCancelled("Input closed") from exc


def parse_selection(text: str, count: int) -> list[int]:
    """Parse ``"1,3-5"`` into zero-based indices below *count*.

    Raises ``ValueError`` for anything that is not a valid 1-based index or
    range.
    """
    indices: list[int] = []
    for part in text.replace(" ", "").split(","):
        if not part:
            continue
        first, sep, last = part.partition("-")
        start = int(first)
        end = int(last) if sep else start
        if not 1 <= start <= end <= count:
            raise ValueError(f"{part} is out of range 1-{count}")
        for number in range(start, end + 1):
            if number - 1 not in indices:
                indices.append(number - 1)
    return indices


def _parse_float(text: str, current: float, out: OutFn) -> float:
    try:
        return to_float32(float(text))
    except ValueError:
        out(f"'{text}' is not a number, keeping {current:g}")
        return current


async def _ask_custom(definition: Definition, current: float, ask: AskFn, out: OutFn) -> float:
    text = await _ask(ask, f"{definition.name} ({current:g}): ")
    if not text:
        return current
    return _parse_float(text, current, out)


async def edit_value(
    definition: Definition,
    current: float,
    *,
    ask: AskFn = _ainput,
    out: OutFn = print,
) -> float:
    """Prompt for a new value, guided by the definition's data type.

    An empty answer or invalid input keeps *current*.
    """
    kind = definition.kind

    if kind is None or kind == "range":
        bounds = ""
        if definition.range is not None:
            bounds = f" [{definition.range.low:g} {definition.range.high:g}]"
        text = await _ask(ask, f"{definition.name}{bounds} ({current:g}): ")
        if not text:
            return current
        value = _parse_float(text, current, out)
        if definition.range is not None and value not in definition.range:
            out(f"warning: {value:g} is outside [{definition.range.low:g} {definition.range.high:g}]")
        return value

    if kind == "values":
        items = sorted((definition.values or {}).items())
        for number, (key, label) in enumerate(items, start=1):
            marker = "*" if abs(key - current) < 0.5 else " "
            out(f"{marker}{number:>3}) {label} ({key})")
        out(f"  {_CUSTOM}) Enter a custom value")
        text = await _ask(ask, f"{definition.name}: ")
        if not text:
            return current
        if text.lower() == _CUSTOM:
            return await _ask_custom(definition, current, ask, out)
        try:
            (index,) = parse_selection(text, len(items))
        except ValueError:
            out(f"'{text}' is not a single listed choice, keeping {current:g}")
            return current
        return float(items[index][0])

    # bitmask
    bits = definition.bitmask or {}
    original = int(round(current)) if math.isfinite(current) else 0
    for bit in sorted(bits):
        marker = "x" if original >> bit & 1 else " "
        out(f"[{marker}] {bit:>2}: {bits[bit]}")
    out(f"  {_CUSTOM}) Enter a custom value")
    text = await _ask(ask, f"{definition.name} bits to set, e.g. 0,2 ({original}): ")
    if not text:
        return current
    if text.lower() == _CUSTOM:
        return await _ask_custom(definition, current, ask, out)
    try:
        selected = [int(part) for part in text.replace(" ", "").split(",") if part]
    except ValueError:
        out(f"'{text}' is not a list of bit numbers, keeping {original}")
        return current
    if any(not 0 <= bit < 32 for bit in selected):
        out(f"bit numbers must be within 0-31, keeping {original}")
        return current
    mask = 0
    for bit in selected:
        mask |= 1 << bit
    return float(mask)


async def select_parameters(
    snapshot: ParameterSnapshot,
    catalog: DefinitionCatalog,
    term: str,
    *,
    ask: AskFn = _ainput,
    out: OutFn = print,
) -> list[Parameter]:
    """List snapshot entries matching *term* and let the operator pick some."""
    needle = term.strip().lower()
    matches = [
        parameter
        for parameter in snapshot.parameters()
        if not needle or needle in catalog.resolve(parameter.name).search_text()
    ]
    if not matches:
        out(f"No parameters match '{term}'")
        return []

    for number, parameter in enumerate(matches, start=1):
        definition = catalog.resolve(parameter.name)
        out(f"{number:>4}) {parameter.name:<16} {parameter.value:<12g} {definition.display_name}")

    while True:
        text = await _ask(ask, "Select (e.g. 1,3-5; empty for none): ")
        if not text:
            return []
        try:
            return [matches[index] for index in parse_selection(text, len(matches))]
        except ValueError as exc:
            out(f"Invalid selection: {exc}")


async def configure(
    client: ConfigurableClient,
    catalog: DefinitionCatalog,
    *,
    ask: AskFn = _ainput,
    out: OutFn = print,
    verify: bool = True,
) -> int:
    """Fetch, search, select, edit and set parameters until the operator quits.

    Returns the number of parameters changed.
    """
    snapshot = await client.fetch_parameters()
    changed = 0
    while True:
        term = await _ask(ask, f"Search parameters ({_QUIT} to quit): ")
        if term.lower() == _QUIT:
            return changed

        for parameter in await select_parameters(snapshot, catalog, term, ask=ask, out=out):
            definition = catalog.resolve(parameter.name)
            out("")
            out(definition.describe())
            if definition.read_only:
                out(f"{parameter.name} is read-only, skipping")
                continue
            value = await edit_value(definition, parameter.value, ask=ask, out=out)
            if value == parameter.value:
                continue

            sent = client.set_parameter(parameter.name, value)
            snapshot.upsert(sent.name, sent.value)
            changed += 1
            if verify:
                await _confirm(client, sent, out)
            else:
                out(f"{sent.name} -> {sent.value:g}")


async def _confirm(client: ConfigurableClient, sent: Parameter, out: OutFn) -> None:
    try:
        echoed = await client.read_parameter(sent.name)
    except MavconfError as exc:
        _logger.debug("Read-back of %s failed", sent.name, exc_info=True)
        out(f"{sent.name} -> {sent.value:g} (not confirmed: {exc})")
        return
    if echoed.value == sent.value:
        out(f"{sent.name} -> {sent.value:g} (confirmed)")
    else:
        out(f"{sent.name} -> vehicle reports {echoed.value:g}, requested {sent.value:g}")


class ConfigurableClient(Protocol):
    """Structural view of :class:`mavconf.client.MavconfClient` used by :func:`configure`."""

    async def fetch_parameters(self) -> ParameterSnapshot:
        ...

    async def read_parameter(self, name: str) -> Parameter:
        ...

    def set_parameter(self, name: str, value: float) -> Parameter:
        ...
