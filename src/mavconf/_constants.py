"""Protocol constants and defaults."""

from __future__ import annotations

TOOL_NAME = "mavconf"

DEFAULT_CONNECTION = "udpbcast:0.0.0.0:14551"

#: Schemes accepted in ``scheme:address:port_or_baud`` connection strings.
CONNECTION_SCHEMES: frozenset[str] = frozenset(
    {"tcpout", "tcpin", "udpout", "udpin", "udpbcast", "serial", "file"}
)

#: Width of the MAVLink ``param_id`` char array.
PARAM_ID_LENGTH = 16

#: Width of the MAVLink ``STATUSTEXT.text`` char array.
STATUSTEXT_LENGTH = 50

# MAV_PARAM_TYPE_REAL32
PARAM_TYPE_REAL32 = 9

DEFAULT_DEFINITIONS_URL = "https://autotest.ardupilot.org/Parameters/apm.pdef.json"

#: Label used for definitions that are not present in the catalog.
UNKNOWN_DEFINITION_LABEL = "unknown"
