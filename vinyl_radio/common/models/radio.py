"""Model for the (administrative) radio stream entity."""

from __future__ import annotations

from dataclasses import dataclass, field
from time import time

from .base import CamelCaseModel, alias
from .enums import RadioStreamStatus


@dataclass
class RadioStream(CamelCaseModel):
    """Administrative entity of a radio stream, one active at a time."""

    id: str
    name: str
    status: RadioStreamStatus = RadioStreamStatus.INACTIVE
    is_live: bool = field(default=False, metadata=alias("isLive"))
    playlist_id: str | None = field(default=None, metadata=alias("playlistId"))
    output_target: str | None = field(default=None, metadata=alias("outputTarget"))
    created_at: float = field(default_factory=time, metadata=alias("createdAt"))
    updated_at: float = field(default_factory=time, metadata=alias("updatedAt"))

    @property
    def is_active(self) -> bool:
        """Return if this radio stream is the active one."""
        return self.status == RadioStreamStatus.ACTIVE

    def touch(self) -> None:
        """Update the modification timestamp."""
        self.updated_at = time()
