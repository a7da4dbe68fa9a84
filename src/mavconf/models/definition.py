"""Parameter definition metadata, as published in ArduPilot's ``apm.pdef.json``.

A definition never influences the wire protocol; it only tells the
interactive layer how to present and prompt for a value.
"""

from __future__ import annotations

import textwrap
from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_pascal

from mavconf._constants import UNKNOWN_DEFINITION_LABEL


class ValueRange(BaseModel):
    """Inclusive interval a float parameter is expected to stay in."""

    model_config = ConfigDict(frozen=True)

    low: float
    high: float

    def __contains__(self, value: float) -> bool:
        return self.low <= value <= self.high


class Definition(BaseModel):
    """Metadata describing one named parameter.

    ``Range`` bounds arrive as strings and ``Values``/``Bitmask`` keys as
    integer strings; pydantic coerces both.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_pascal,
    )

    name: str = ""
    display_name: str = ""
    description: str = ""
    user: str = "Standard"
    range: ValueRange | None = None
    values: dict[int, str] | None = None
    bitmask: dict[int, str] | None = None
    units: str | None = None
    increment: float | None = None
    reboot_required: bool = False
    read_only: bool = False
    vehicle: str = ""

    @classmethod
    def unknown(cls, name: str) -> Definition:
        """Fallback used for parameters without published metadata."""
        return cls(
            name=name,
            display_name=UNKNOWN_DEFINITION_LABEL,
            description="This parameter is unknown.",
            user="Advanced",
            vehicle=UNKNOWN_DEFINITION_LABEL,
        )

    @property
    def kind(self) -> Literal["range", "values", "bitmask"] | None:
        """How the value should be prompted for."""
        if self.bitmask:
            return "bitmask"
        if self.values:
            return "values"
        if self.range is not None:
            return "range"
        return None

    def search_text(self) -> str:
        return f"{self.name}\n{self.display_name}\n{self.description}\n{self.vehicle}".lower()

    def describe(self, width: int = 80) -> str:
        """Render title, wrapped description and legal values for a terminal."""
        width = max(width, 20)
        title = f"{self.display_name} [{self.name}]" if self.display_name else self.name
        parts = [title, textwrap.fill(self.description, width) if self.description else ""]

        if self.kind == "range" and self.range is not None:
            units = f" {self.units}" if self.units else ""
            parts.append(f"range: [{self.range.low:g} - {self.range.high:g}]{units}")
        elif self.kind in ("values", "bitmask"):
            mapping = self.values if self.kind == "values" else self.bitmask
            parts.append(_value_table(mapping or {}, width))

        if self.reboot_required:
            parts.append(textwrap.fill("A reboot is required for changes to take effect.", width))
        return "\n\n".join(part for part in parts if part)


def _value_table(mapping: dict[int, str], width: int) -> str:
    """Lay out ``key = label`` pairs column-major, as many columns as fit."""
    if not mapping:
        return ""
    items = sorted(mapping.items())
    key_width = max(len(str(key)) for key, _ in items)
    label_width = max(len(label) for _, label in items)
    joint = " = "
    cols = max(1, width // (key_width + label_width + len(joint) + 1))
    rows = -(-len(items) // cols)

    lines = []
    for row in range(rows):
        cells = [
            f"{key:>{key_width}}{joint}{label:<{label_width}}"
            for key, label in items[row::rows]
        ]
        lines.append(" ".join(cells).rstrip())
    return "\n".join(lines)
