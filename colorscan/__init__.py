"""Concurrent extraction of the most prevalent colors from remote images."""

__version__ = "0.1.0"
