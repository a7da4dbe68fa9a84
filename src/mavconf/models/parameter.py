"""Parameter and parameter snapshot models."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict

from mavconf._constants import PARAM_ID_LENGTH
from mavconf.models._base import Float32, to_float32


def validate_param_name(name: str) -> str:
    """Check that *name* fits the 16 byte ``param_id`` wire field."""
    if not name:
        raise ValueError("parameter name must be non-empty")
    if "\x00" in name:
        raise ValueError(f"parameter name {name!r} contains a NUL byte")
    try:
        raw = name.encode("ascii")
    except UnicodeEncodeError as exc:
        raise ValueError(f"parameter name {name!r} is not ASCII") from exc
    if len(raw) > PARAM_ID_LENGTH:
        raise ValueError(f"parameter name {name!r} is longer than {PARAM_ID_LENGTH} bytes")
    return name


ParamName = Annotated[str, AfterValidator(validate_param_name)]


class Parameter(BaseModel):
    """A single named, float valued vehicle setting.

    Integer and bitmask parameters are carried as floats as well, e.g.
    ``0b1101`` becomes ``13.0``.
    """

    model_config = ConfigDict(frozen=True)

    name: ParamName
    value: Float32


class ParameterSnapshot(Mapping[str, float]):
    """Locally held copy of the vehicle's parameters.

    Iteration is ordered by parameter name. Storing a name twice keeps the
    newer value and does not change the length.
    """

    def __init__(self, values: Mapping[str, float] | None = None) -> None:
        self._values: dict[str, float] = {}
        if values:
            for name, value in values.items():
                self.upsert(name, value)

    def upsert(self, name: str, value: float) -> bool:
        """Store *value* under *name*; return ``True`` if the name is new."""
        is_new = name not in self._values
        self._values[name] = to_float32(value)
        return is_new

    def __getitem__(self, name: str) -> float:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._values))

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ParameterSnapshot({len(self)} parameters)"

    def parameters(self) -> list[Parameter]:
        """Return every entry as a :class:`Parameter`, sorted by name."""
        return [Parameter(name=name, value=self._values[name]) for name in self]
