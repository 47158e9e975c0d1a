"""Shared helpers: time and number parsing, structured logging."""
