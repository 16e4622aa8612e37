"""Threaded AT command handling for modems over serial or other byte streams."""

__version__ = "0.1.0"

__all__ = ["cli", "handler", "settings", "streams"]