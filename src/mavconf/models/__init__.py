"""Typed models for MAVLink messages, parameters and parameter definitions."""

from mavconf.models._base import MavBaseModel, MessageType
from mavconf.models.definition import Definition, ValueRange
from mavconf.models.messages import (
    MESSAGE_MODELS,
    Heartbeat,
    MavMessage,
    ParamRequestList,
    ParamRequestRead,
    ParamSet,
    ParamValue,
    StatusText,
)
from mavconf.models.parameter import Parameter, ParameterSnapshot

__all__ = [
    "MESSAGE_MODELS",
    "Definition",
    "Heartbeat",
    "MavBaseModel",
    "MavMessage",
    "MessageType",
    "ParamRequestList",
    "ParamRequestRead",
    "ParamSet",
    "ParamValue",
    "Parameter",
    "ParameterSnapshot",
    "StatusText",
    "ValueRange",
]
