"""Helpers for the Vinyl Radio server."""
