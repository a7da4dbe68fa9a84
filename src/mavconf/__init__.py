"""mavconf - Async MAVLink parameter management."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("mavconf")
except PackageNotFoundError:
    __version__ = "0+local"
from mavconf.client import MavconfClient
from mavconf.config import MavconfConfig
from mavconf.definitions import DefinitionCatalog
from mavconf.exceptions import (
    MavconfCancelled,
    MavconfConfigError,
    MavconfConnectionClosedError,
    MavconfDefinitionError,
    MavconfError,
    MavconfParseError,
    MavconfProtocolTimeout,
    MavconfTransportError,
)
from mavconf.models import (
    Definition,
    Heartbeat,
    MessageType,
    Parameter,
    ParameterSnapshot,
    ParamRequestList,
    ParamRequestRead,
    ParamSet,
    ParamValue,
    StatusText,
)

__all__ = [
    "__version__",
    "Definition",
    "DefinitionCatalog",
    "Heartbeat",
    "MavconfCancelled",
    "MavconfClient",
    "MavconfConfig",
    "MavconfConfigError",
    "MavconfConnectionClosedError",
    "MavconfDefinitionError",
    "MavconfError",
    "MavconfParseError",
    "MavconfProtocolTimeout",
    "MavconfTransportError",
    "MessageType",
    "ParamRequestList",
    "ParamRequestRead",
    "ParamSet",
    "ParamValue",
    "Parameter",
    "ParameterSnapshot",
    "StatusText",
]
