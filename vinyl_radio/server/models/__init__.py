"""Server specific models and base classes."""
