"""Base model, message type tag and char-array helpers for MAVLink messages.

Every modelled MAVLink message inherits from :class:`MavBaseModel` which
provides:

* a class-level :class:`MessageType` tag, fixed per message variant and
  independent of the payload, used as the dispatch key;
* frozen instances, so one decoded message can be fanned out to any number
  of subscribers without copying;
* :meth:`MavBaseModel.wire_fields`, the keyword arguments for the matching
  ``pymavlink`` ``<name>_encode`` builder, with fixed-width char arrays
  padded with NUL bytes.

Inbound char arrays are accepted as ``str`` or ``bytes``; trailing NUL
padding is stripped on the way in.
"""

from __future__ import annotations

import enum
import struct
from typing import Annotated, Any, ClassVar

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict


class MessageType(enum.StrEnum):
    """Stable tag of a MAVLink message variant.

    Values are the MAVLink message names as reported by ``pymavlink``'s
    ``get_type()``.
    """

    HEARTBEAT = "HEARTBEAT"
    PARAM_REQUEST_LIST = "PARAM_REQUEST_LIST"
    PARAM_REQUEST_READ = "PARAM_REQUEST_READ"
    PARAM_VALUE = "PARAM_VALUE"
    PARAM_SET = "PARAM_SET"
    STATUSTEXT = "STATUSTEXT"


def decode_char_array(value: Any) -> Any:
    """Turn a fixed-width MAVLink char array into a ``str``.

    Everything from the first NUL byte on is padding.
    """
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).split(b"\x00", 1)[0].decode("ascii", errors="replace")
    if isinstance(value, str):
        return value.split("\x00", 1)[0]
    return value


def encode_char_array(value: str, length: int) -> bytes:
    """Encode *value* as a NUL-padded char array of exactly *length* bytes."""
    raw = value.encode("ascii")
    if len(raw) > length:
        raise ValueError(f"{value!r} is longer than {length} bytes")
    return raw.ljust(length, b"\x00")


def to_float32(value: float) -> float:
    """Round *value* through IEEE-754 single precision."""
    try:
        return float(struct.unpack("<f", struct.pack("<f", value))[0])
    except OverflowError as exc:
        raise ValueError(f"{value!r} does not fit in a 32-bit float") from exc


Float32 = Annotated[float, AfterValidator(to_float32)]
"""A float that is stored exactly as the vehicle stores it (single precision)."""

CharArray = Annotated[str, BeforeValidator(decode_char_array)]
"""A fixed-width MAVLink char array with NUL padding removed."""


class MavBaseModel(BaseModel):
    """Base for every modelled MAVLink message."""

    message_type: ClassVar[MessageType]
    """Dispatch tag shared by every instance of the variant."""

    _CHAR_FIELDS: ClassVar[dict[str, int]] = {}
    """Fixed-width char array fields and their wire widths."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    def wire_fields(self) -> dict[str, Any]:
        """Return keyword arguments for the ``pymavlink`` encode builder."""
        fields = self.model_dump()
        for name, length in self._CHAR_FIELDS.items():
            fields[name] = encode_char_array(fields[name], length)
        return fields
