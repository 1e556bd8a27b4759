"""Helium - single-port web gateway with tunnel, message channel and chat streaming."""

__version__ = "1.0.0"
