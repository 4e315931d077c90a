"""Model for the process wide live mix configuration."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any

from mashumaro import DataClassDictMixin

from vinyl_radio.common.helpers.util import snake_keys

from .enums import StreamType
from .errors import InvalidDataError


@dataclass(frozen=True)
class LiveMixConfig(DataClassDictMixin):
    """Tunable parameters read by every mix computation."""

    master_volume: float = 1.0
    crossfade_duration: float = 3.0
    tts_volume: float = 0.8
    music_volume: float = 0.9
    ad_volume: float = 0.85
    auto_fade: bool = True
    normalize_audio: bool = True

    def merge(self, values: dict[str, Any]) -> LiveMixConfig:
        """Return a new config with the (partial) values merged in."""
        values = snake_keys(values)
        known = {x.name: x.type for x in fields(self)}
        if unknown := set(values) - set(known):
            raise InvalidDataError(f"Unknown mix config key(s): {', '.join(sorted(unknown))}")
        parsed: dict[str, Any] = {}
        for key, value in values.items():
            if known[key] in (bool, "bool"):
                if not isinstance(value, bool):
                    raise InvalidDataError(f"{key} should be a boolean")
                parsed[key] = value
                continue
            if isinstance(value, bool) or not isinstance(value, int | float):
                raise InvalidDataError(f"{key} should be a number")
            if value < 0:
                raise InvalidDataError(f"{key} can not be negative")
            parsed[key] = float(value)
        return replace(self, **parsed)

    def volume_for(self, stream_type: StreamType) -> float:
        """Return the volume level for the given stream type."""
        if stream_type == StreamType.MUSIC:
            return self.music_volume
        if stream_type == StreamType.TTS:
            return self.tts_volume
        if stream_type == StreamType.AD:
            return self.ad_volume
        return 1.0

    def gain_for(self, stream_type: StreamType, stream_volume: float = 1.0) -> float:
        """Return the final (linear) gain to apply to a stream."""
        return round(self.master_volume * self.volume_for(stream_type) * stream_volume, 4)
