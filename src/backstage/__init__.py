"""Backstage release check service."""

__version__ = "0.4.0"
