"""Vinyl Radio: live radio playlist and stream orchestration."""
