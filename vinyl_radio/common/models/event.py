"""Model for a Vinyl Radio Event."""

from dataclasses import dataclass, field
from typing import Any

from mashumaro.mixins.orjson import DataClassORJSONMixin

from vinyl_radio.common.helpers.json import get_serializable_value
from vinyl_radio.common.models.enums import EventType


@dataclass
class RadioEvent(DataClassORJSONMixin):
    """Representation of an Event emitted in/by Vinyl Radio."""

    event: EventType
    object_id: str | None = None  # stream_id, playlist_id or track_id
    data: Any = field(
        default=None,
        metadata={
            "serialize": lambda v: get_serializable_value(v)  # pylint: disable=unnecessary-lambda
        },
    )
