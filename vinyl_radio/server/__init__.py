"""Vinyl Radio: live radio stream orchestration server."""

from .server import RadioServer  # noqa: F401
