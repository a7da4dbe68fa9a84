"""Parameter definition catalog.

Loads ArduPilot's ``apm.pdef.json`` either from a local file or over HTTP.
The file groups definitions by vehicle or library prefix::

    {
      "json": {"version": 0},
      "ArduCopter": {
        "ANGLE_MAX": {"DisplayName": "Angle Max", "Description": "...", "Range": {"low": "1000", "high": "8000"}},
        ...
      },
      ...
    }
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import aiohttp
from pydantic import ValidationError

from mavconf.exceptions import MavconfDefinitionError
from mavconf.models.definition import Definition

_logger = logging.getLogger(__name__)

_METADATA_KEYS = frozenset({"json"})


def parse_definitions(data: Mapping[str, Any]) -> dict[str, Definition]:
    """Flatten the grouped ``apm.pdef.json`` structure into ``name -> Definition``.

    Entries that fail validation are skipped.
    """
    if not isinstance(data, Mapping):
        raise MavconfDefinitionError("Definition file root is not an object")

    definitions: dict[str, Definition] = {}
    skipped = 0
    for group, entries in data.items():
        if group in _METADATA_KEYS or not isinstance(entries, Mapping):
            continue
        for name, raw in entries.items():
            if not isinstance(raw, Mapping):
                skipped += 1
                continue
            try:
                definition = Definition.model_validate(raw)
            except ValidationError:
                _logger.debug("Skipping malformed definition %s/%s", group, name, exc_info=True)
                skipped += 1
                continue
            definitions[name] = definition.model_copy(update={"name": name, "vehicle": group})
    if skipped:
        _logger.debug("Skipped %d malformed definition(s)", skipped)
    return definitions


class DefinitionCatalog:
    """Read-only lookup of parameter metadata by name."""

    def __init__(self, definitions: Mapping[str, Definition] | Iterable[Definition] | None = None) -> None:
        if definitions is None:
            self._definitions: dict[str, Definition] = {}
        elif isinstance(definitions, Mapping):
            self._definitions = dict(definitions)
        else:
            self._definitions = {definition.name: definition for definition in definitions}

    @classmethod
    def from_json(cls, text: str) -> DefinitionCatalog:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise MavconfDefinitionError(f"Definition data is not JSON: {exc}") from exc
        return cls(parse_definitions(data))

    @classmethod
    def load_file(cls, path: Path | str) -> DefinitionCatalog:
        """Load definitions from a local ``apm.pdef.json``."""
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise MavconfDefinitionError(f"Unable to read definitions from {path}: {exc}") from exc
        catalog = cls.from_json(text)
        _logger.debug("Loaded %d definitions from %s", len(catalog), path)
        return catalog

    @classmethod
    async def fetch(
        cls,
        url: str,
        *,
        session: aiohttp.ClientSession | None = None,
        timeout: float = 30.0,
    ) -> DefinitionCatalog:
        """Download definitions from *url*.

        Uses *session* when given, otherwise a short-lived one.
        """
        _logger.debug("GET %s", url)
        owns_session = session is None
        http = session or aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout))
        try:
            async with http.get(url) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise MavconfDefinitionError(f"HTTP {resp.status} from {url}: {text[:200]}")
        except aiohttp.ClientError as exc:
            raise MavconfDefinitionError(f"Request to {url} failed: {exc}") from exc
        finally:
            if owns_session:
                await http.close()

        catalog = cls.from_json(text)
        _logger.debug("Fetched %d definitions from %s", len(catalog), url)
        return catalog

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def lookup(self, name: str) -> Definition | None:
        return self._definitions.get(name)

    def resolve(self, name: str) -> Definition:
        """Like :meth:`lookup` but falls back to an "unknown" definition."""
        return self._definitions.get(name) or Definition.unknown(name)

    def all(self) -> list[Definition]:
        """Every definition, sorted by name."""
        return [self._definitions[name] for name in sorted(self._definitions)]

    def search(self, term: str) -> list[Definition]:
        """Case-insensitive match over name, display name, description and group."""
        needle = term.strip().lower()
        if not needle:
            return self.all()
        return [definition for definition in self.all() if needle in definition.search_text()]
