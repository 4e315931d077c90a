"""Various (common) helpers."""
