"""Common models and helpers, shared between the server and the client."""
