"""Core controllers of the Vinyl Radio server."""
