"""Models shared between the Vinyl Radio server and client."""
