"""Borp: Borg-compatible repository locking and config parsing."""

__version__ = "0.1.0"
