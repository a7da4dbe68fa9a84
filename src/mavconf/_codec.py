"""Mapping between ``pymavlink`` message objects and mavconf message models."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from mavconf.models._base import MavBaseModel, MessageType
from mavconf.models.messages import MESSAGE_MODELS

_logger = logging.getLogger(__name__)

_MODELS_BY_NAME: dict[str, type[MavBaseModel]] = {tag.value: model for tag, model in MESSAGE_MODELS.items()}


def decode(raw: Any) -> MavBaseModel | None:
    """Convert a decoded ``pymavlink`` message into a mavconf model.

    Returns ``None`` for frames that are not modelled here (including
    ``pymavlink``'s ``BAD_DATA`` pseudo messages) and for frames whose
    fields fail validation.
    """
    name = raw.get_type()
    model = _MODELS_BY_NAME.get(name)
    if model is None:
        return None
    try:
        return model.model_validate(raw.to_dict())
    except ValidationError:
        _logger.debug("Dropping malformed %s frame", name, exc_info=True)
        return None


def encode(message: MavBaseModel, mav: Any) -> Any:
    """Build the ``pymavlink`` message for *message* using the link's ``MAVLink`` object."""
    tag: MessageType = message.message_type
    builder = getattr(mav, f"{tag.value.lower()}_encode")
    return builder(**message.wire_fields())
