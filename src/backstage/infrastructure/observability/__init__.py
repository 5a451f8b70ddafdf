"""Logging setup and log message templates."""
