"""Batch registry image mirroring service."""

__version__ = "0.1.0"
