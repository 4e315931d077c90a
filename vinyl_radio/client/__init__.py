"""Vinyl Radio Client: query and control a Vinyl Radio server and follow its playback."""

from .client import RadioClient  # noqa: F401
from .playback import PendingAction, PlaybackStateMachine  # noqa: F401
