"""Veritas artifact submission and review pipeline."""

__version__ = "0.1.0"
