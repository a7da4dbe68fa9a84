"""MAVLink messages exchanged by the parameter protocol.

Field names follow the MAVLink common message set so that a decoded
``pymavlink`` message can be validated straight from ``to_dict()``.
"""

from __future__ import annotations

from typing import ClassVar

from mavconf._constants import (
    PARAM_ID_LENGTH,
    PARAM_TYPE_REAL32,
    STATUSTEXT_LENGTH,
)
from mavconf.models._base import CharArray, Float32, MavBaseModel, MessageType


class Heartbeat(MavBaseModel):
    """Liveness message; only its arrival matters to this package."""

    message_type: ClassVar[MessageType] = MessageType.HEARTBEAT

    type: int = 0
    autopilot: int = 0
    base_mode: int = 0
    custom_mode: int = 0
    system_status: int = 0
    mavlink_version: int = 3


class ParamRequestList(MavBaseModel):
    """Ask the vehicle to stream every parameter it holds."""

    message_type: ClassVar[MessageType] = MessageType.PARAM_REQUEST_LIST

    target_system: int = 0
    target_component: int = 0


class ParamRequestRead(MavBaseModel):
    """Ask the vehicle for one parameter, by name (``param_index=-1``) or index."""

    message_type: ClassVar[MessageType] = MessageType.PARAM_REQUEST_READ
    _CHAR_FIELDS: ClassVar[dict[str, int]] = {"param_id": PARAM_ID_LENGTH}

    target_system: int = 0
    target_component: int = 0
    param_id: CharArray = ""
    param_index: int = -1


class ParamValue(MavBaseModel):
    """One parameter as reported by the vehicle.

    ``param_count`` restates the vehicle's total on every reply and
    ``param_index`` is the position of this entry in that total.
    """

    message_type: ClassVar[MessageType] = MessageType.PARAM_VALUE
    _CHAR_FIELDS: ClassVar[dict[str, int]] = {"param_id": PARAM_ID_LENGTH}

    param_id: CharArray
    param_value: Float32
    param_type: int = PARAM_TYPE_REAL32
    param_count: int = 0
    param_index: int = 0


class ParamSet(MavBaseModel):
    """Write one parameter on the vehicle."""

    message_type: ClassVar[MessageType] = MessageType.PARAM_SET
    _CHAR_FIELDS: ClassVar[dict[str, int]] = {"param_id": PARAM_ID_LENGTH}

    target_system: int = 0
    target_component: int = 0
    param_id: CharArray
    param_value: Float32
    param_type: int = PARAM_TYPE_REAL32


class StatusText(MavBaseModel):
    """Human readable status line emitted by the vehicle."""

    message_type: ClassVar[MessageType] = MessageType.STATUSTEXT
    _CHAR_FIELDS: ClassVar[dict[str, int]] = {"text": STATUSTEXT_LENGTH}

    severity: int = 6
    text: CharArray = ""


MavMessage = Heartbeat | ParamRequestList | ParamRequestRead | ParamValue | ParamSet | StatusText
"""Union of every modelled message."""

MESSAGE_MODELS: dict[MessageType, type[MavBaseModel]] = {
    model.message_type: model
    for model in (Heartbeat, ParamRequestList, ParamRequestRead, ParamValue, ParamSet, StatusText)
}
